"""
pytest configuration and fixtures.
"""

import io
import json
from typing import Any, Callable, Dict, List, Optional, Tuple
import jwt
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from apicore.http.request import Request, build_request
from apicore.identity import HS256TokenDecoder, InMemoryUserDirectory


SECRET = "apicore-test-secret-0123456789abcdef"


def encode_token(claims: Dict[str, Any], secret: str = SECRET, alg: str = "HS256") -> str:
    """Sign claims as a JWT (test-side issuer)."""
    if alg == "none":
        return jwt.encode(claims, None, algorithm="none")
    return jwt.encode(claims, secret, algorithm=alg)


@pytest.fixture
def token_secret() -> str:
    return SECRET


@pytest.fixture
def make_token() -> Callable[..., str]:
    """Factory for signed tokens: make_token({"sub": 1})."""
    return encode_token


@pytest.fixture
def decoder() -> HS256TokenDecoder:
    return HS256TokenDecoder(SECRET)


@pytest.fixture
def users() -> InMemoryUserDirectory:
    """
    1: active admin
    2: active customer
    3: suspended customer
    4: active, no role
    """
    directory = InMemoryUserDirectory()
    directory.add(1, role="admin", email="admin@example.com")
    directory.add(2, role="customer", email="carl@example.com")
    directory.add(3, status="suspended", role="customer", email="sam@example.com")
    directory.add(4, email="norole@example.com")
    return directory


@pytest.fixture
def make_request() -> Callable[..., Request]:
    """
    Factory for requests:

        make_request("POST", "/products", json_body={"name": "x"})
        make_request("GET", "/profile", token="...")
    """

    def factory(
        method: str = "GET",
        target: str = "/",
        headers: Optional[Dict[str, str]] = None,
        json_body: Any = None,
        token: Optional[str] = None,
        body: bytes = b"",
    ) -> Request:
        headers = dict(headers or {})
        if json_body is not None:
            headers.setdefault("Content-Type", "application/json")
            body = json.dumps(json_body).encode("utf-8")
        if token is not None:
            headers["Authorization"] = f"Bearer {token}"
        return build_request(method, target, headers=headers, body=body)

    return factory


class WSGIResult:
    """Captured output of one WSGI call."""

    def __init__(self, status: str, headers: List[Tuple[str, str]], body: bytes):
        self.status = status
        self.headers = dict(headers)
        self.body = body

    @property
    def status_code(self) -> int:
        return int(self.status.split(" ", 1)[0])

    def json(self) -> Dict[str, Any]:
        return json.loads(self.body.decode("utf-8"))


def call_wsgi(
    app: Callable,
    method: str = "GET",
    path: str = "/",
    query: str = "",
    headers: Optional[Dict[str, str]] = None,
    body: bytes = b"",
    content_length: Optional[str] = None,
) -> WSGIResult:
    """Invoke a WSGI app in-process and capture the response."""
    environ: Dict[str, Any] = {
        "REQUEST_METHOD": method,
        "PATH_INFO": path,
        "QUERY_STRING": query,
        "SERVER_NAME": "testserver",
        "SERVER_PORT": "80",
        "SERVER_PROTOCOL": "HTTP/1.1",
        "REMOTE_ADDR": "127.0.0.1",
        "wsgi.version": (1, 0),
        "wsgi.url_scheme": "http",
        "wsgi.input": io.BytesIO(body),
        "wsgi.errors": io.StringIO(),
        "wsgi.multithread": True,
        "wsgi.multiprocess": False,
        "wsgi.run_once": False,
    }
    if content_length is not None:
        environ["CONTENT_LENGTH"] = content_length
    elif body:
        environ["CONTENT_LENGTH"] = str(len(body))

    for name, value in (headers or {}).items():
        key = name.upper().replace("-", "_")
        if key in ("CONTENT_TYPE", "CONTENT_LENGTH"):
            environ[key] = value
        else:
            environ[f"HTTP_{key}"] = value

    captured: Dict[str, Any] = {}

    def start_response(status: str, response_headers: List[Tuple[str, str]]) -> None:
        captured["status"] = status
        captured["headers"] = response_headers

    chunks = app(environ, start_response)
    return WSGIResult(captured["status"], captured["headers"], b"".join(chunks))


@pytest.fixture
def wsgi_client() -> Callable[..., WSGIResult]:
    return call_wsgi
