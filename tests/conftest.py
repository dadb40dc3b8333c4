"""
Pytest configuration and fixtures for the Ollama streaming client tests.
"""

import json
import socket
import socketserver
import sys
import threading
from http.server import BaseHTTPRequestHandler
from pathlib import Path
from types import SimpleNamespace

import pytest

SRC_ROOT = Path(__file__).resolve().parents[1] / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from ollama_stream.telemetry.metrics import MetricsCollector
from tests.helpers import chat_line


class ThreadedTCPServer(socketserver.ThreadingMixIn, socketserver.TCPServer):
    allow_reuse_address = True
    daemon_threads = True
    block_on_close = False


class OllamaRequestHandler(BaseHTTPRequestHandler):
    protocol_version = "HTTP/1.1"

    def _json_response(self, data: dict, status: int = 200):
        payload = json.dumps(data).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)

    def _read_json(self) -> dict:
        length = int(self.headers.get("Content-Length", "0"))
        raw = self.rfile.read(length) if length else b"{}"
        try:
            return json.loads(raw.decode("utf-8"))
        except json.JSONDecodeError:
            return {}

    def do_GET(self):
        state = self.server.server_state  # type: ignore[attr-defined]
        state.setdefault("get_headers", []).append(dict(self.headers))
        if self.path == "/api/tags":
            status = state.get("tags_status", 200)
            if status != 200:
                self._json_response({"error": "tags unavailable"}, status=status)
                return
            self._json_response({"models": state["models"]})
            return

        self._json_response({"error": "not found"}, status=404)

    def do_POST(self):
        state = self.server.server_state  # type: ignore[attr-defined]
        payload = self._read_json()

        if self.path == "/api/show":
            name = payload.get("model", "")
            shows = state["shows"]
            if name not in shows:
                self._json_response({"error": f"model '{name}' not found"}, status=404)
                return
            self._json_response(shows[name])
            return

        if self.path == "/api/chat":
            state.setdefault("chat_calls", []).append(payload)
            state.setdefault("chat_headers", []).append(dict(self.headers))
            status = state.get("chat_status", 200)
            if status != 200:
                self._json_response({"error": state.get("chat_error", "chat failure")}, status=status)
                return
            try:
                self._stream_chat(state)
            except (BrokenPipeError, ConnectionResetError):
                # Client tore the stream down early.
                self.close_connection = True
            return

        self._json_response({"error": "not found"}, status=404)

    def _stream_chat(self, state: dict) -> None:
        lines = [line.encode("utf-8") for line in state["chat_lines"]]
        hold = state.get("chat_hold")

        if not state.get("chat_chunked", True):
            body = b"".join(lines)
            self.send_response(200)
            self.send_header("Content-Type", "application/x-ndjson")
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)
            return

        self.send_response(200)
        self.send_header("Content-Type", "application/x-ndjson")
        self.send_header("Transfer-Encoding", "chunked")
        self.end_headers()
        for index, line in enumerate(lines):
            self.wfile.write(f"{len(line):x}\r\n".encode("ascii") + line + b"\r\n")
            self.wfile.flush()
            if hold is not None and index == 0:
                hold.wait(timeout=5)
        self.wfile.write(b"0\r\n\r\n")
        self.wfile.flush()

    def log_message(self, format, *args):
        # Suppress default HTTP server logging to keep test output clean.
        return


SAMPLE_TAGS = [
    {
        "name": "llama3.2:latest",
        "modified_at": "2025-01-01T00:00:00Z",
        "size": 2019393189,
        "digest": "a80c4f17acd55265feec403c7aef86be0c25983ab279d83f3bcd3abbcb5b8b72",
        "details": {
            "format": "gguf",
            "family": "llama",
            "families": ["llama"],
            "parameter_size": "3.2B",
            "quantization_level": "Q4_K_M",
        },
    },
    {
        "name": "qwen3:8b",
        "modified_at": "2025-01-02T00:00:00Z",
        "size": 5225376047,
        "digest": "500a1f067a9f782620b40bee6f7b0c89e17ae61f686b92c24933e4ca4b2b8b41",
        "details": {
            "format": "gguf",
            "family": "qwen3",
            "parameter_size": "8.2B",
            "quantization_level": "Q4_K_M",
        },
    },
]

SAMPLE_SHOWS = {
    "llama3.2:latest": {
        "capabilities": ["completion", "tools"],
        "model_info": {"general.architecture": "llama", "llama.context_length": 131072},
    },
    "qwen3:8b": {
        "capabilities": ["completion", "tools", "thinking"],
        "model_info": {"general.architecture": "qwen3", "qwen3.context_length": 8192},
    },
}


@pytest.fixture
def ollama_server():
    """Start a lightweight HTTP server that mimics the Ollama endpoints used here."""
    hold = threading.Event()
    state = {
        "models": SAMPLE_TAGS,
        "shows": SAMPLE_SHOWS,
        "tags_status": 200,
        "chat_status": 200,
        "chat_chunked": True,
        "chat_lines": [
            chat_line("Hel"),
            chat_line("lo"),
            chat_line("", done=True, eval_count=2, prompt_eval_count=7),
        ],
    }

    server = ThreadedTCPServer(("127.0.0.1", 0), OllamaRequestHandler)
    server.server_state = state  # type: ignore[attr-defined]

    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()

    base_url = f"http://127.0.0.1:{server.server_address[1]}"

    try:
        yield SimpleNamespace(base_url=base_url, state=state, hold=hold)
    finally:
        hold.set()
        server.shutdown()
        server.server_close()


@pytest.fixture
def closing_server():
    """TCP server that reads the request, then closes without answering.

    Set ``reply["hold"]`` to a threading.Event to delay the reply until it is
    set; the server then records whether the client hung up first.
    """
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(("127.0.0.1", 0))
    listener.listen(1)
    reply = {"data": b""}

    def serve():
        try:
            conn, _ = listener.accept()
        except OSError:
            return
        with conn:
            received = b""
            # Read the whole request so close() does not reset the connection.
            while not received.endswith(b"}"):
                chunk = conn.recv(65536)
                if not chunk:
                    break
                received += chunk
            if reply.get("hold") is not None:
                reply["hold"].wait(5)
            if reply["data"]:
                conn.sendall(reply["data"])
            if reply.get("hold") is not None:
                conn.settimeout(5)
                try:
                    reply["client_closed"] = conn.recv(1) == b""
                except TimeoutError:
                    reply["client_closed"] = False
                except OSError:
                    reply["client_closed"] = True

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    try:
        yield SimpleNamespace(
            base_url=f"http://127.0.0.1:{listener.getsockname()[1]}", reply=reply
        )
    finally:
        listener.close()


@pytest.fixture
def unused_port():
    """A port with nothing listening on it."""
    spare = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    spare.bind(("127.0.0.1", 0))
    port = spare.getsockname()[1]
    spare.close()
    return port


@pytest.fixture(autouse=True)
def reset_metrics():
    """Keep MetricsCollector state isolated between tests."""
    MetricsCollector.reset()
    yield
    MetricsCollector.reset()
