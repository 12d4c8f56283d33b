"""Integration tests for the upload pipeline against a local HTTP server.

These tests verify that all components work together correctly:
- Flags → changelog → streamed multipart body → HTTP POST → uploaded id
- The body is sent with chunked transfer encoding and bearer authentication
- Server rejections and unreachable servers surface the right way
"""

import io
import json
import logging
import socket
import threading
import time
from email.parser import BytesParser
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Generator, List

import pytest
import requests

from faynosync.errors import UploadTimeoutError
from faynosync.uploader import (
    build_endpoint,
    build_upload_body,
    parse_upload_args,
    run_upload,
    submit_upload,
)
from faynosync.utils.config import RuntimeConfig


def read_chunked(stream) -> bytes:
    """Decode a chunked transfer-encoded request body."""
    body = bytearray()
    while True:
        size_line = stream.readline().strip()
        size = int(size_line.split(b";")[0], 16)
        if size == 0:
            # Trailer section ends with an empty line
            while stream.readline() not in (b"\r\n", b"\n", b""):
                pass
            return bytes(body)
        body.extend(stream.read(size))
        stream.readline()


class UploadHandler(BaseHTTPRequestHandler):
    """Records each upload request and answers with the configured reply."""

    requests_seen: List[dict] = []
    reply_status = 200
    reply_body = b'{"uploadResult":{"Uploaded":"srv-1"}}'

    def do_POST(self):
        if self.headers.get("Transfer-Encoding", "").lower() == "chunked":
            body = read_chunked(self.rfile)
        else:
            body = self.rfile.read(int(self.headers.get("Content-Length", 0)))

        self.requests_seen.append(
            {"path": self.path, "headers": dict(self.headers), "body": body}
        )

        self.send_response(self.reply_status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(self.reply_body)))
        self.end_headers()
        self.wfile.write(self.reply_body)

    def log_message(self, format, *args):
        pass


@pytest.fixture
def upload_server() -> Generator[str, None, None]:
    """Run a local upload endpoint and yield its base URL."""
    UploadHandler.requests_seen = []
    UploadHandler.reply_status = 200
    UploadHandler.reply_body = b'{"uploadResult":{"Uploaded":"srv-1"}}'

    server = ThreadingHTTPServer(("127.0.0.1", 0), UploadHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_address[1]}/"
    finally:
        server.shutdown()
        server.server_close()
        thread.join(timeout=5)


@pytest.fixture
def artifacts(tmp_path: Path) -> List[Path]:
    """Create two build artifacts."""
    first = tmp_path / "app-1.2.0.zip"
    second = tmp_path / "app-1.2.0.sig"
    first.write_bytes(bytes(range(256)) * 1024)
    second.write_bytes(b"signature")
    return [first, second]


def parse_parts(request: dict):
    message = BytesParser().parsebytes(
        f"Content-Type: {request['headers']['Content-Type']}\r\n\r\n".encode("ascii")
        + request["body"]
    )
    return message.get_payload()


def test_upload_end_to_end(upload_server: str, artifacts: List[Path], caplog) -> None:
    """Test a full upload is received intact and the id is reported."""
    runtime = RuntimeConfig(token="secret", server=upload_server, owner="acme")
    intent = parse_upload_args(
        [
            "--app", "demo",
            "--version", "1.2.0",
            "--channel", "stable",
            "--platform", "linux",
            "--arch", "amd64",
            "--publish",
            "--file", str(artifacts[0]),
            "--file", str(artifacts[1]),
            "--changelog-stdin",
        ]
    )
    sink = logging.getLogger("faynosync.integration")

    with caplog.at_level(logging.INFO, logger="faynosync.integration"):
        outcome = run_upload(
            intent, runtime, io.BytesIO(b"\xef\xbb\xbf- fixed\r\n- added\r\n"), sink
        )

    assert outcome.success is True
    assert outcome.uploaded_id == "srv-1"
    assert any(r.getMessage() == "Upload completed" for r in caplog.records)

    assert len(UploadHandler.requests_seen) == 1
    request = UploadHandler.requests_seen[0]
    assert request["path"] == "/upload"
    assert request["headers"]["Authorization"] == "Bearer secret"
    assert request["headers"].get("Transfer-Encoding", "").lower() == "chunked"

    parts = parse_parts(request)
    assert [p.get_param("name", header="content-disposition") for p in parts] == [
        "file", "file", "data",
    ]
    assert parts[0].get_filename() == "app-1.2.0.zip"
    assert artifacts[0].read_bytes() + b"\r\n--" in request["body"]
    assert parts[1].get_payload(decode=True) == b"signature"

    metadata = json.loads(parts[2].get_payload(decode=True))
    assert metadata == {
        "app_name": "demo",
        "version": "1.2.0",
        "channel": "stable",
        "publish": True,
        "critical": False,
        "intermediate": False,
        "platform": "linux",
        "arch": "amd64",
        "changelog": "- fixed\n- added\n",
    }


def test_server_rejection(upload_server: str, artifacts: List[Path]) -> None:
    """Test a non-2xx reply is a failed outcome carrying the body."""
    UploadHandler.reply_status = 409
    UploadHandler.reply_body = b'{"error":"version already exists"}'
    runtime = RuntimeConfig(token="secret", server=upload_server, owner="acme")
    intent = parse_upload_args(["--file", str(artifacts[1])])

    outcome = run_upload(
        intent, runtime, io.BytesIO(), logging.getLogger("faynosync.integration")
    )

    assert outcome.success is False
    assert outcome.status_code == 409
    assert outcome.response_body == '{"error":"version already exists"}'


def test_unreachable_server(artifacts: List[Path]) -> None:
    """Test a refused connection raises a transport error."""
    placeholder = ThreadingHTTPServer(("127.0.0.1", 0), UploadHandler)
    port = placeholder.server_address[1]
    placeholder.server_close()

    runtime = RuntimeConfig(token="secret", server=f"http://127.0.0.1:{port}", owner="acme")
    intent = parse_upload_args(["--file", str(artifacts[1])])

    with pytest.raises(requests.ConnectionError):
        run_upload(intent, runtime, io.BytesIO(), logging.getLogger("faynosync.integration"))


@pytest.fixture
def trickling_server() -> Generator[str, None, None]:
    """Accept one upload, then send the response one byte every 0.1s."""
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(("127.0.0.1", 0))
    listener.listen(1)
    stop = threading.Event()

    def serve():
        try:
            conn, _ = listener.accept()
        except OSError:
            return
        with conn:
            received = b""
            while b"\r\n0\r\n\r\n" not in received:
                chunk = conn.recv(65536)
                if not chunk:
                    return
                received += chunk
            reply = b"HTTP/1.1 200 OK\r\nContent-Length: 2\r\n\r\n{}"
            for byte in reply:
                if stop.wait(0.1):
                    return
                try:
                    conn.sendall(bytes([byte]))
                except OSError:
                    return

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{listener.getsockname()[1]}/"
    finally:
        stop.set()
        listener.close()
        thread.join(timeout=5)


def test_slow_response_headers_hit_total_deadline(
    trickling_server: str, artifacts: List[Path]
) -> None:
    """Test a server trickling its headers cannot outlast the total timeout."""
    body, content_type = build_upload_body([str(artifacts[1])], "{}")

    started = time.monotonic()
    with pytest.raises(UploadTimeoutError):
        submit_upload(
            build_endpoint(trickling_server), body, content_type, "secret", timeout=1.0
        )

    assert time.monotonic() - started < 2.5
