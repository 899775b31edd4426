"""
Unit tests for request normalization.
"""

import io
import json

import pytest

from apicore.errors import ConfigurationFault
from apicore.http.request import (
    Request,
    build_request,
    normalize_path,
    sanitize_header,
    sanitize_value,
)
from apicore.identity import Identity


FORM = {"Content-Type": "application/x-www-form-urlencoded"}
JSON = {"Content-Type": "application/json; charset=utf-8"}


class TestPathAndQuery:
    """Tests for path and query string handling."""

    def test_method_upper_cased(self):
        assert build_request("get", "/").method == "GET"

    @pytest.mark.parametrize("target,expected", [
        ("/products/", "/products"),
        ("/products", "/products"),
        ("", "/"),
        ("/", "/"),
        ("///", "/"),
        ("/products/?page=2", "/products"),
        ("/caf%C3%A9", "/café"),
    ])
    def test_path_normalized(self, target, expected):
        assert build_request("GET", target).path == expected

    def test_normalize_path_adds_leading_slash(self):
        assert normalize_path("products") == "/products"

    def test_query_parsed_from_target(self):
        request = build_request("GET", "/products?page=2&limit=10")

        assert request.query == {"page": "2", "limit": "10"}
        assert request.query_param("page") == "2"
        assert request.query_param("missing") is None
        assert request.query_param("missing", "default") == "default"

    def test_explicit_query_string_wins(self):
        request = build_request("GET", "/products?page=2", query_string="page=3")
        assert request.query_param("page") == "3"

    def test_repeated_query_key_last_wins(self):
        request = build_request("GET", "/products?tag=a&tag=b")

        assert request.query_param("tag") == "b"
        assert request.query_list("tag") == ["a", "b"]
        assert request.query_list("missing") == []

    def test_blank_query_values_kept(self):
        request = build_request("GET", "/search?q=")
        assert request.query == {"q": ""}


class TestSanitization:
    """Tests for trimming and HTML escaping."""

    def test_query_values_escaped_and_trimmed(self):
        request = build_request("GET", "/search?name=%3Cscript%3Ealert(1)%3C/script%3E&q=+hi+")

        assert request.query_param("name") == "&lt;script&gt;alert(1)&lt;/script&gt;"
        assert request.query_param("q") == "hi"

    def test_sanitize_value_recurses(self):
        value = {"tags": ["<b>", " x "], "nested": {"q": "'a'"}, "n": 3, "ok": True, "none": None}

        assert sanitize_value(value) == {
            "tags": ["&lt;b&gt;", "x"],
            "nested": {"q": "&#x27;a&#x27;"},
            "n": 3,
            "ok": True,
            "none": None,
        }

    def test_header_markup_stripped_not_escaped(self):
        request = build_request("GET", "/", headers={
            "X-Note": "  <b>hello</b> ",
            "Authorization": "Bearer a&b",
        })

        assert request.header("X-Note") == "hello"
        assert request.header("Authorization") == "Bearer a&b"

    def test_sanitize_header(self):
        assert sanitize_header("<i>x</i>") == "x"


class TestHeaders:
    """Tests for header access."""

    def test_header_lookup_case_insensitive(self):
        request = build_request("GET", "/", headers={"Content-Type": "application/json"})

        assert request.header("content-type") == "application/json"
        assert request.header("CONTENT-TYPE") == "application/json"
        assert request.headers == {"content-type": "application/json"}
        assert request.header("X-Missing", "fallback") == "fallback"

    def test_repeated_headers_combined(self):
        request = build_request("GET", "/", headers=[("Accept", "text/html"), ("accept", "application/json")])
        assert request.header("Accept") == "text/html, application/json"

    def test_content_type_property(self):
        request = build_request("POST", "/", headers=JSON)

        assert request.content_type == "application/json"
        assert request.is_json is True
        assert build_request("GET", "/").content_type is None


class TestJsonBody:
    """Tests for JSON body handling."""

    def test_json_object_body(self):
        body = json.dumps({"name": " <b>Pizza</b> ", "price": 9.5}).encode()
        request = build_request("POST", "/products", headers=JSON, body=body)

        assert request.body == {"name": "&lt;b&gt;Pizza&lt;/b&gt;", "price": 9.5}
        assert request.json() == {"name": " <b>Pizza</b> ", "price": 9.5}

    def test_unicode_json_body(self):
        body = json.dumps({"name": "Crème brûlée"}, ensure_ascii=False).encode("utf-8")
        request = build_request("POST", "/", headers=JSON, body=body)

        assert request.body_param("name") == "Crème brûlée"

    @pytest.mark.parametrize("body", [b"{not json", b"[1, 2, 3]", b'"text"', b"", b"\xff\xfe"])
    def test_non_object_json_gives_empty_body(self, body):
        request = build_request("POST", "/", headers=JSON, body=body)

        assert request.body == {}
        assert request.json() == {}

    def test_deeply_nested_json_gives_empty_body(self):
        request = build_request("POST", "/", headers=JSON, body=b"[" * 200000)

        assert request.body == {}
        assert request.json() == {}

    def test_json_ignored_without_json_content_type(self):
        request = build_request("POST", "/", headers={"Content-Type": "text/plain"}, body=b'{"a": 1}')

        assert request.body == {}
        assert request.raw_body == b'{"a": 1}'


class TestFormBody:
    """Tests for form-encoded bodies."""

    def test_form_fields(self):
        request = build_request("POST", "/", headers=FORM, body=b"name=Pizza&price=9&tag=a&tag=b")

        assert request.body == {"name": "Pizza", "price": "9", "tag": "b"}

    def test_form_json_field_merged(self):
        embedded = json.dumps({"name": "<i>Soup</i>", "qty": 2})
        body = f"json={embedded}&name=Plain&note=hi".encode()
        request = build_request("POST", "/", headers=FORM, body=body)

        assert request.body_param("name") == "&lt;i&gt;Soup&lt;/i&gt;"
        assert request.body_param("qty") == 2
        assert request.body_param("note") == "hi"

    def test_form_json_field_disabled(self):
        body = b'json={"name": "Soup"}&name=Plain'
        request = build_request("POST", "/", headers=FORM, body=body, allow_form_json=False)

        assert request.body_param("name") == "Plain"

    def test_form_json_field_not_an_object(self):
        request = build_request("POST", "/", headers=FORM, body=b"json=[1,2]&a=1")

        assert request.body_param("a") == "1"
        assert "0" not in request.body


class TestRawBody:
    """Tests for the raw body."""

    def test_stream_read_once(self):
        stream = io.BytesIO(b'{"a": 1}')
        request = build_request("POST", "/", headers=JSON, body=stream)

        assert stream.read() == b""
        assert request.raw_body == b'{"a": 1}'
        assert request.raw_body == b'{"a": 1}'
        assert request.body == {"a": 1}

    def test_str_body_encoded(self):
        request = build_request("POST", "/", headers=JSON, body='{"a": "é"}')
        assert request.body == {"a": "é"}

    def test_unsupported_body_type(self):
        with pytest.raises(TypeError):
            build_request("POST", "/", body=12345)


class TestAccessors:
    """Tests for the merged accessors."""

    def test_all_body_wins(self):
        request = build_request(
            "POST", "/?name=query&page=1", headers=JSON, body=b'{"name": "body"}'
        )

        assert request.all() == {"name": "body", "page": "1"}

    def test_input_prefers_body(self):
        request = build_request(
            "POST", "/?name=query&page=1", headers=JSON, body=b'{"name": "body"}'
        )

        assert request.input("name") == "body"
        assert request.input("page") == "1"
        assert request.input("missing", 0) == 0

    def test_is_method(self):
        request = build_request("PATCH", "/")
        assert request.is_method("patch")
        assert not request.is_method("GET")


class TestIdentity:
    """Tests for identity attachment."""

    def test_no_identity_by_default(self):
        request = build_request("GET", "/")

        assert request.identity is None
        assert request.is_authenticated is False

    def test_attach_identity(self):
        request = build_request("GET", "/")
        identity = Identity(subject_id=1, role="admin", status="active")

        request.attach_identity(identity)

        assert request.identity is identity
        assert request.is_authenticated is True

    def test_attach_identity_twice_is_fault(self):
        request = build_request("GET", "/")
        request.attach_identity(Identity(subject_id=1))

        with pytest.raises(ConfigurationFault):
            request.attach_identity(Identity(subject_id=2))
        assert request.identity.subject_id == 1

    def test_request_is_dataclass(self):
        request = Request(method="GET", path="/")
        assert request.query == {}
        assert request.json() == {}
