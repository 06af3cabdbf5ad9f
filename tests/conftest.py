import http.client

import pytest

from server import start_server
from streamer.model import MediaSource, ServerConfig


MEDIA_LENGTH = 1000


@pytest.fixture
def media_bytes():
    return bytes((i * 7 + 3) % 256 for i in range(MEDIA_LENGTH))


@pytest.fixture
def media_file(tmp_path, media_bytes):
    path = tmp_path / "sample movie.mp4"
    path.write_bytes(media_bytes)
    return path


def get(port, path, headers=None):
    """GET a path from a local server; returns (response, body)."""
    conn = http.client.HTTPConnection('127.0.0.1', port, timeout=10)
    try:
        conn.request('GET', path, headers=headers or {})
        resp = conn.getresponse()
        body = resp.read()
        return resp, body
    finally:
        conn.close()


@pytest.fixture
def serve():
    """Start a server for a MediaSource on an ephemeral port; stopped after the test."""
    started = []

    def _serve(media):
        config = ServerConfig(port=0, media=media, host='127.0.0.1')
        httpd, thread = start_server(config)
        started.append((httpd, thread))
        return httpd

    yield _serve

    for httpd, thread in started:
        httpd.shutdown()
        httpd.server_close()
        thread.join(timeout=5)


@pytest.fixture
def running_server(serve, media_file):
    return serve(MediaSource(media_file))


@pytest.fixture
def fetch(running_server):
    port = running_server.server_address[1]

    def _fetch(path, headers=None):
        return get(port, path, headers)

    return _fetch


@pytest.fixture
def http_get():
    return get
