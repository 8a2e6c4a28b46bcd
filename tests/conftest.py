from __future__ import annotations

import socket
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer

import pytest


class _Handler(BaseHTTPRequestHandler):
    def log_message(self, format: str, *args) -> None:  # noqa: A002
        return

    def do_GET(self) -> None:  # noqa: N802
        page = "<!doctype html><html><head><title>OK</title></head><body><h1>Hello</h1></body></html>"
        routes: dict[str, tuple[int, dict[str, str], str]] = {
            "/": (
                200,
                {
                    "Content-Type": "text/html; charset=utf-8",
                    "ETag": '"home-v1"',
                    "Last-Modified": "Wed, 01 Jan 2025 00:00:00 GMT",
                    "Cache-Control": "public, max-age=60",
                },
                page,
            ),
            "/pricing": (200, {"Content-Type": "text/html; charset=utf-8"}, page),
            "/zh": (200, {"Content-Type": "text/html; charset=utf-8"}, page),
            "/zh/pricing": (200, {"Content-Type": "text/html; charset=utf-8"}, page),
            "/broken": (500, {"Content-Type": "text/plain; charset=utf-8"}, "Internal Server Error"),
        }

        if self.path == "/redirect":
            self.send_response(301)
            self.send_header("Location", "/pricing")
            self.send_header("Content-Length", "0")
            self.end_headers()
            return

        status, headers, body = routes.get(
            self.path,
            (404, {"Content-Type": "text/plain; charset=utf-8"}, "Not Found"),
        )
        body_bytes = body.encode("utf-8")
        self.send_response(status)
        for k, v in headers.items():
            self.send_header(k, v)
        self.send_header("Content-Length", str(len(body_bytes)))
        self.end_headers()
        self.wfile.write(body_bytes)


@pytest.fixture(scope="module")
def local_server_base_url() -> str:
    httpd = HTTPServer(("127.0.0.1", 0), _Handler)
    host, port = httpd.server_address
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()

    try:
        yield f"http://{host}:{port}"
    finally:
        httpd.shutdown()
        thread.join(timeout=5)
        httpd.server_close()


@pytest.fixture
def closed_port_url() -> str:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return f"http://127.0.0.1:{port}"
