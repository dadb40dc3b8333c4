"""
Quick Start Example - Streaming chat with ollama_stream

This example lists local models, resolves their capabilities and streams a
chat reply token by token. Point it at another server with OLLAMA_BASE_URL
(and OLLAMA_API_KEY for hosted servers).
"""

import asyncio
import logging
import sys

from ollama_stream import (
    AsyncClientConfig,
    AsyncOllamaStreamClient,
    MetricsCollector,
    OllamaCatalogClient,
    OllamaStreamError,
    SystemMessage,
    UserMessage,
    build_chat_request,
)


def example_sync_listing():
    """List installed models without an event loop."""
    print("Example 1: Model listing (sync)")
    print("-" * 40)

    with OllamaCatalogClient() as client:
        if not client.health_check():
            print("Ollama is not reachable. Start it with: ollama serve")
            return False
        for listing in client.list_models():
            print(f"  {listing.name:<30} {listing.details.parameter_size}")
    return True


async def example_streaming_chat():
    """Discover models, then stream a reply from the first one."""
    print("\nExample 2: Streaming chat (async)")
    print("-" * 40)

    async with AsyncOllamaStreamClient(AsyncClientConfig.from_settings()) as client:
        models = await client.discover_models()
        if not models:
            print("No models installed. Pull one with: ollama pull llama3.2")
            return

        model = models[0]
        print(f"Using {model.label} (context {model.max_tokens} tokens, tools={model.supports_tools})")

        request = build_chat_request(
            model,
            [
                SystemMessage(content="Answer in one short paragraph."),
                UserMessage(content="Why is the sky blue?"),
            ],
        )

        stream = await client.stream_chat(request)
        print(f"Transport: {stream.transport_kind}\n")
        async with stream:
            async for delta in stream:
                print(delta.content, end="", flush=True)
                if delta.done:
                    print(f"\n\n[{delta.done_reason}] {delta.eval_count} tokens generated")


def main():
    logging.basicConfig(level=logging.WARNING)

    if not example_sync_listing():
        return 1

    try:
        asyncio.run(example_streaming_chat())
    except OllamaStreamError as exc:
        print(f"\nStreaming failed: {exc}")
        return 1

    print("\nMetrics:", MetricsCollector.get_metrics_json())
    return 0


if __name__ == "__main__":
    sys.exit(main())
