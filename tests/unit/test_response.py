"""
Unit tests for the JSON response envelope.
"""

import json

import pytest

from apicore.errors import ErrorKind
from apicore.http.response import (
    JSON_CONTENT_TYPE,
    Response,
    ResponseAlreadyRendered,
    ResponseBuilder,
    success,
    created,
    error,
    bad_request,
    unauthorized,
    forbidden,
    not_found,
    method_not_allowed,
    validation_failed,
    server_error,
    no_response,
)
from apicore.http.status_codes import HTTPStatus, status_line


class TestResponse:
    """Tests for the Response envelope."""

    def test_success_derived_from_status(self):
        assert Response(status=200).success is True
        assert Response(status=201).success is True
        assert Response(status=299).success is True
        assert Response(status=302).success is False
        assert Response(status=404).success is False

    def test_explicit_success_kept(self):
        assert Response(status=200, success=False).success is False

    def test_envelope_minimal(self):
        assert Response().to_dict() == {"success": True, "message": "Success"}

    def test_envelope_omits_empty_parts(self):
        response = Response(status=400, message="Bad", data=None, errors={})
        assert response.to_dict() == {"success": False, "message": "Bad"}

    def test_falsy_data_still_present(self):
        """Empty lists and zero are payloads, only None is omitted."""
        assert success([]).to_dict()["data"] == []
        assert success(0).to_dict()["data"] == 0

    def test_success_round_trip(self):
        """A success envelope renders to JSON carrying the same payload."""
        payload = {"id": 7, "name": "Pizza", "tags": ["hot", "veg"]}
        response = success(payload, "Product retrieved successfully")

        decoded = json.loads(response.render().decode("utf-8"))

        assert decoded == {
            "success": True,
            "message": "Product retrieved successfully",
            "data": payload,
        }

    def test_render_keeps_unicode_unescaped(self):
        body = success({"name": "Crème brûlée"}).render()

        assert "Crème brûlée".encode("utf-8") in body
        assert b"\\u" not in body

    def test_render_is_terminal(self):
        response = success()
        response.render()

        assert response.rendered is True
        with pytest.raises(ResponseAlreadyRendered):
            response.render()

    def test_header_items(self):
        response = success().set_header("X-One", "1")
        body = response.render()
        headers = dict(response.header_items(len(body)))

        assert headers["Content-Type"] == JSON_CONTENT_TYPE
        assert headers["Content-Length"] == str(len(body))
        assert headers["X-One"] == "1"

    def test_set_header_chains(self):
        response = success().set_header("X-One", "1").set_header("X-Two", "2")
        assert response.headers == {"X-One": "1", "X-Two": "2"}


class TestResponseBuilder:
    """Tests for ResponseBuilder."""

    def test_builder(self):
        response = (ResponseBuilder()
            .status(HTTPStatus.UNPROCESSABLE_ENTITY)
            .message("Validation failed")
            .error("email", "email is required")
            .errors({"name": "name is required"})
            .header("X-Trace", "abc")
            .build())

        assert response.status == 422
        assert response.success is False
        assert response.errors == {"email": "email is required", "name": "name is required"}
        assert response.headers == {"X-Trace": "abc"}

    def test_builder_success_override(self):
        response = ResponseBuilder().status(202).success(False).build()
        assert response.success is False

    def test_builds_independent_responses(self):
        builder = ResponseBuilder().header("X-A", "1")
        first = builder.build()
        second = builder.build()

        first.set_header("X-B", "2")
        assert "X-B" not in second.headers


class TestConvenienceFunctions:
    """Tests for response helpers."""

    def test_created(self):
        response = created({"id": 3})

        assert response.status == 201
        assert response.message == "Created successfully"
        assert response.data == {"id": 3}

    def test_error_with_field_errors(self):
        response = error("Nope", 409, {"email": "taken"})

        assert response.to_dict() == {"success": False, "message": "Nope", "errors": {"email": "taken"}}

    @pytest.mark.parametrize("factory,status", [
        (bad_request, 400),
        (unauthorized, 401),
        (forbidden, 403),
        (not_found, 404),
        (server_error, 500),
    ])
    def test_status_helpers(self, factory, status):
        response = factory()

        assert response.status == status
        assert response.success is False

    @pytest.mark.parametrize("response,kind", [
        (bad_request(), ErrorKind.CLIENT_INPUT),
        (unauthorized(), ErrorKind.AUTHENTICATION),
        (forbidden(), ErrorKind.AUTHORIZATION),
        (not_found(), ErrorKind.NOT_FOUND),
        (method_not_allowed(["GET"]), ErrorKind.METHOD_NOT_ALLOWED),
        (validation_failed({"name": "name is required"}), ErrorKind.VALIDATION),
        (server_error(), ErrorKind.UNHANDLED),
    ])
    def test_helpers_follow_error_kinds(self, response, kind):
        assert response.status == kind.status
        assert response.message == kind.message

    def test_helper_message_override(self):
        assert forbidden("Admins only").message == "Admins only"
        assert forbidden("Admins only").status == ErrorKind.AUTHORIZATION.status

    def test_unauthorized_names_bearer_scheme(self):
        assert unauthorized().headers["WWW-Authenticate"] == 'Bearer realm="api"'

    def test_method_not_allowed_has_allow(self):
        response = method_not_allowed(["GET", "POST"])

        assert response.status == 405
        assert response.headers["Allow"] == "GET, POST"

    def test_validation_failed(self):
        response = validation_failed({"price": "price is required"})

        assert response.status == 422
        assert response.message == "Validation failed"
        assert response.to_dict()["errors"] == {"price": "price is required"}

    def test_no_response(self):
        response = no_response()

        assert response.status == 500
        assert response.message == "No response generated"


class TestStatusCodes:
    """Tests for status codes and the error taxonomy."""

    def test_phrase(self):
        assert HTTPStatus.UNPROCESSABLE_ENTITY.phrase == "Unprocessable Entity"
        assert HTTPStatus.NOT_FOUND == 404

    def test_categories(self):
        assert HTTPStatus.CREATED.is_success
        assert HTTPStatus.FORBIDDEN.is_client_error
        assert HTTPStatus.INTERNAL_SERVER_ERROR.is_server_error

    def test_status_line(self):
        assert status_line(422) == "422 Unprocessable Entity"
        assert status_line(HTTPStatus.OK) == "200 OK"
        assert status_line(418) == "418 Unknown"

    def test_error_kinds(self):
        assert ErrorKind.AUTHORIZATION.status == HTTPStatus.FORBIDDEN
        assert ErrorKind.VALIDATION.status == 422
        assert ErrorKind.NOT_FOUND.message == "Resource not found"
        assert ErrorKind.CONFIGURATION is not ErrorKind.UNHANDLED
        assert ErrorKind.CONFIGURATION.is_fault
        assert not ErrorKind.AUTHENTICATION.is_fault
