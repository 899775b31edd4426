"""
=============================================================================
NORMALIZED REQUEST
=============================================================================

Turns raw transport inputs (method, target, headers, body) into one
Request value that every stage and handler reads from. Nothing in apicore
reads ambient process state: build_request() is the only way in.

=============================================================================
CONSTRUCTION PIPELINE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        build_request()                              │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   "GET /products/?page=2"                                            │
    │        │                                                             │
    │        ├── path  ──► "/products"        (trailing slash stripped,    │
    │        │                                  "" becomes "/")            │
    │        └── query ──► {"page": "2"}       (trimmed + HTML-escaped)     │
    │                                                                      │
    │   headers ──► {"content-type": "..."}   (lower-case names, markup    │
    │                                          stripped, NOT escaped)      │
    │                                                                      │
    │   body bytes (read ONCE, cached)                                    │
    │        │                                                             │
    │        ├── Content-Type contains application/json                   │
    │        │       └── json.loads → body (sanitized), json() (raw)       │
    │        │                                                             │
    │        └── application/x-www-form-urlencoded                        │
    │                └── form fields → body (sanitized)                    │
    │                    + optional field named "json" decoded & merged   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
WHY ESCAPE AT CONSTRUCTION?
=============================================================================

Query and body strings are trimmed and HTML-entity-escaped once, here,
so no controller can forget to do it before handing a value to something
that renders HTML:

    ?name=<script>alert(1)</script>
    request.query_param("name")  →  "&lt;script&gt;alert(1)&lt;/script&gt;"

Headers are only stripped of markup: escaping would corrupt values like
"Bearer a&b" that are compared byte-for-byte.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List, Iterable, Mapping, Union
from urllib.parse import parse_qs, unquote
import html
import json
import logging
import re

from ..errors import ConfigurationFault
from ..identity import Identity


logger = logging.getLogger(__name__)


HeaderInput = Union[Mapping[str, str], Iterable[tuple[str, str]], None]

_TAG_PATTERN = re.compile(r"<[^>]*>")


# =============================================================================
# SANITIZATION
# =============================================================================

def sanitize_value(value: Any) -> Any:
    """
    Trim and HTML-escape strings, recursing into lists and dicts.

    Non-string scalars (numbers, booleans, None) pass through untouched.

    Example:
        sanitize_value({"q": "  <b>hi</b> ", "n": 3})
        # {"q": "&lt;b&gt;hi&lt;/b&gt;", "n": 3}
    """
    if isinstance(value, str):
        return html.escape(value, quote=True).strip()
    if isinstance(value, dict):
        return {key: sanitize_value(item) for key, item in value.items()}
    if isinstance(value, list):
        return [sanitize_value(item) for item in value]
    return value


def sanitize_header(value: str) -> str:
    """Strip markup tags and surrounding whitespace from a header value."""
    return _TAG_PATTERN.sub("", value).strip()


def normalize_path(path: str) -> str:
    """
    Normalize a request path or route pattern.

        "/products/"  → "/products"
        ""            → "/"
        "///"         → "/"
        "products"    → "/products"
    """
    path = path.rstrip("/")
    if not path:
        return "/"
    if not path.startswith("/"):
        path = "/" + path
    return path


# =============================================================================
# REQUEST
# =============================================================================

@dataclass
class Request:
    """
    A normalized inbound call.

    Constructed once per call by build_request() and passed by reference
    through the pipeline. Only the authentication middleware changes it,
    by attaching an Identity; controller actions treat it as read-only.

    =========================================================================
    ATTRIBUTES
    =========================================================================

        method:         Upper-case HTTP method ("GET", "POST", ...)
        path:           Normalized path without query string
        query:          Sanitized query parameters (last value wins)
        body:           Sanitized body fields (JSON object or form)
        headers:        Header values keyed by LOWER-CASE name
        raw_body:       Body bytes exactly as received
        client_address: (ip, port) of the caller, when known

    =========================================================================
    """

    method: str
    path: str
    query: Dict[str, Any] = field(default_factory=dict)
    body: Dict[str, Any] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    raw_body: bytes = b""
    client_address: tuple[str, int] = ("", 0)

    _json: Optional[Any] = field(default=None, repr=False)
    _query_lists: Dict[str, List[str]] = field(default_factory=dict, repr=False)
    _identity: Optional[Identity] = field(default=None, repr=False)

    # =========================================================================
    # IDENTITY
    # =========================================================================

    @property
    def identity(self) -> Optional[Identity]:
        """The authenticated principal, or None before authentication."""
        return self._identity

    @property
    def is_authenticated(self) -> bool:
        return self._identity is not None

    def attach_identity(self, identity: Identity) -> None:
        """
        Attach the authenticated identity. Allowed once per request.

        Raises:
            ConfigurationFault: if an identity is already attached (two
                authentication stages in one chain).
        """
        if self._identity is not None:
            raise ConfigurationFault("An identity is already attached to this request")
        self._identity = identity

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def content_type(self) -> Optional[str]:
        """
        The Content-Type without parameters, lower-cased.

            "application/json; charset=utf-8" → "application/json"
        """
        ct = self.headers.get("content-type", "")
        return ct.split(";")[0].strip().lower() or None

    @property
    def is_json(self) -> bool:
        """Check if the body was sent as JSON."""
        return "application/json" in self.headers.get("content-type", "").lower()

    def is_method(self, method: str) -> bool:
        return self.method == method.upper()

    # =========================================================================
    # ACCESSORS
    # =========================================================================

    def all(self) -> Dict[str, Any]:
        """Query merged with body; body values win on conflict."""
        merged = dict(self.query)
        merged.update(self.body)
        return merged

    def input(self, key: str, default: Any = None) -> Any:
        """Look a key up in the body first, then the query."""
        if key in self.body:
            return self.body[key]
        return self.query.get(key, default)

    def query_param(self, key: str, default: Any = None) -> Any:
        return self.query.get(key, default)

    def query_list(self, key: str) -> List[str]:
        """
        All sanitized values of a repeated query parameter.

        Example:
            # URL: /products?tag=a&tag=b
            request.query_param("tag")  # "b"
            request.query_list("tag")   # ["a", "b"]
        """
        return list(self._query_lists.get(key, []))

    def body_param(self, key: str, default: Any = None) -> Any:
        return self.body.get(key, default)

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """
        Get a header value (case-insensitive lookup).

        Example:
            request.header("Authorization") == request.header("authorization")
        """
        return self.headers.get(name.lower(), default)

    def json(self) -> Any:
        """
        The decoded JSON body before sanitization.

        Returns an empty dict when the body wasn't JSON or couldn't be decoded.
        """
        return self._json if self._json is not None else {}


# =============================================================================
# FACTORY
# =============================================================================

def _read_once(source: Any) -> bytes:
    """
    Read a body given as bytes, str, or a binary stream.

    Streams are read exactly once; the result is what the Request keeps.
    """
    if source is None:
        return b""
    if isinstance(source, bytes):
        return source
    if isinstance(source, str):
        return source.encode("utf-8")
    if hasattr(source, "read"):
        data = source.read()
        return data.encode("utf-8") if isinstance(data, str) else (data or b"")
    raise TypeError(f"Unsupported body type: {type(source).__name__}")


def _collect_headers(headers: HeaderInput) -> Dict[str, str]:
    """
    Normalize header names to lower case and sanitize values.

    Repeated headers are combined with ", " (RFC 7230).
    """
    if headers is None:
        return {}
    items = headers.items() if isinstance(headers, Mapping) else headers

    collected: Dict[str, str] = {}
    for name, value in items:
        name = name.strip().lower()
        value = sanitize_header(str(value))
        if name in collected:
            collected[name] += ", " + value
        else:
            collected[name] = value
    return collected


def _parse_pairs(encoded: str) -> tuple[Dict[str, Any], Dict[str, List[str]]]:
    """
    Parse "a=1&b=2&b=3" into (last-value dict, all-values dict), unsanitized.
    """
    lists = parse_qs(encoded, keep_blank_values=True)
    return {key: values[-1] for key, values in lists.items()}, lists


def _decode_json_object(raw: Union[str, bytes]) -> Optional[Dict[str, Any]]:
    """Decode JSON, returning None unless it's a JSON object."""
    try:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        decoded = json.loads(raw)
    except (ValueError, RecursionError) as e:
        logger.debug(f"Ignoring undecodable JSON body: {e}")
        return None
    return decoded if isinstance(decoded, dict) else None


def build_request(
    method: str,
    target: str,
    headers: HeaderInput = None,
    body: Any = b"",
    query_string: Optional[str] = None,
    client_address: tuple[str, int] = ("", 0),
    allow_form_json: bool = True,
) -> Request:
    """
    Build a Request from raw transport inputs.

    =====================================================================
    BODY HANDLING
    =====================================================================

    Content-Type contains "application/json":
        The body is decoded. A JSON object becomes the body mapping
        (sanitized) and json() returns it unsanitized. Anything else
        (invalid JSON, an array, a scalar) gives an empty body.

    Content-Type is application/x-www-form-urlencoded:
        Form fields become the body mapping (sanitized). When
        allow_form_json is on and a field is literally named "json"
        and holds a JSON object, that object is sanitized and merged
        over the form fields.

    Any other Content-Type: empty body (raw_body is still available).

    =====================================================================

    Args:
        method: HTTP method (any case)
        target: Request target, either a path or "path?query"
        headers: Mapping or list of (name, value) pairs
        body: Bytes, str, or a binary stream (read once)
        query_string: Explicit query string; overrides one in `target`
        client_address: (ip, port) of the caller
        allow_form_json: Enable the form field "json" escape hatch

    Returns:
        The normalized Request
    """
    target = target.split("#", 1)[0]
    raw_path, _, target_query = target.partition("?")
    path = normalize_path(unquote(raw_path))
    if query_string is None:
        query_string = target_query

    query_raw, query_lists = _parse_pairs(query_string)
    header_map = _collect_headers(headers)
    raw_body = _read_once(body)

    content_type = header_map.get("content-type", "").lower()
    body_fields: Dict[str, Any] = {}
    json_body: Optional[Dict[str, Any]] = None

    if "application/json" in content_type:
        json_body = _decode_json_object(raw_body) if raw_body else None
        body_fields = sanitize_value(json_body) if json_body is not None else {}
        if json_body is None:
            json_body = {}
    elif "application/x-www-form-urlencoded" in content_type and raw_body:
        form_raw, _ = _parse_pairs(raw_body.decode("utf-8", errors="replace"))
        body_fields = sanitize_value(form_raw)

        embedded = form_raw.get("json")
        if allow_form_json and isinstance(embedded, str):
            decoded = _decode_json_object(embedded)
            if decoded is not None:
                body_fields.update(sanitize_value(decoded))

    return Request(
        method=method.upper(),
        path=path,
        query=sanitize_value(query_raw),
        body=body_fields,
        headers=header_map,
        raw_body=raw_body,
        client_address=client_address,
        _json=json_body,
        _query_lists=sanitize_value(query_lists),
    )
