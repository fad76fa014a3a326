import io
import json

import pytest

from openapi_gateway.client import REQUEST_HEADERS, Client
from openapi_gateway.errors import (
    InvalidSpecError,
    MissingHTTPSpecError,
    MissingSpecError,
    SpecValidationError,
)
from openapi_gateway.loader import from_openapi, resolve_base_url
from openapi_gateway.transport import Response


SPEC_URL = "https://api.com/openapi.json"


class TestSources:
    def test_mapping(self, users_spec, fake_http):
        client = from_openapi(users_spec, http=fake_http)

        assert isinstance(client, Client)
        assert client.registry.names() == ["users", "create_user", "update_user"]
        assert client.info["title"] == "Users API"

    def test_json_string(self, users_spec, fake_http):
        client = from_openapi(json.dumps(users_spec), http=fake_http)

        assert "users" in client

    def test_reader(self, users_spec, fake_http):
        client = from_openapi(io.StringIO(json.dumps(users_spec)), http=fake_http)

        assert "update_user" in client

    def test_path(self, users_spec, fake_http, tmp_path):
        spec_file = tmp_path / "openapi.json"
        spec_file.write_text(json.dumps(users_spec), encoding="utf-8")

        client = from_openapi(spec_file, http=fake_http)

        assert "create_user" in client

    def test_missing_path(self, fake_http, tmp_path):
        with pytest.raises(MissingSpecError):
            from_openapi(tmp_path / "nope.json", http=fake_http)

    def test_invalid_json(self, fake_http):
        with pytest.raises(InvalidSpecError):
            from_openapi("{not json", http=fake_http)

    def test_incomplete_spec_fails_loudly(self, fake_http):
        with pytest.raises(SpecValidationError):
            from_openapi({"info": {}}, http=fake_http, base_url="http://localhost:9292")

    def test_unsupported_source(self, fake_http):
        with pytest.raises(TypeError):
            from_openapi(42, http=fake_http)


class TestURLSource:
    def test_fetches_spec_with_request_headers(self, users_spec, fake_http):
        fake_http.response = Response(200, "application/json", users_spec)

        client = from_openapi(SPEC_URL, http=fake_http)

        assert fake_http.calls == [
            {"verb": "get", "url": SPEC_URL, "body": None, "headers": REQUEST_HEADERS}
        ]
        op = client["users"]
        assert op.verb == "get"
        assert op.description == "List users"
        assert op.parameters[0].description == "search by name (eg bill)"

    def test_decodes_text_bodies(self, users_spec, fake_http):
        fake_http.response = Response(200, "text/plain", json.dumps(users_spec))

        assert "users" in from_openapi(SPEC_URL, http=fake_http)

    def test_non_2xx_raises(self, fake_http):
        fake_http.response = Response(404, "application/json", {"error": "not found"})

        with pytest.raises(MissingHTTPSpecError) as exc_info:
            from_openapi(SPEC_URL, http=fake_http)

        assert isinstance(exc_info.value, MissingSpecError)
        assert exc_info.value.response.status == 404
        assert "HTTP 404" in str(exc_info.value)

    def test_uses_spec_origin_without_servers(self, users_spec, fake_http):
        users_spec["servers"] = []
        fake_http.response = Response(200, "application/json", users_spec)

        client = from_openapi(SPEC_URL, http=fake_http)

        assert client.base_url == "https://api.com"


class TestResolveBaseURL:
    def test_explicit_base_url_wins(self):
        document = {"servers": [{"url": "http://localhost:9292"}]}

        assert resolve_base_url(document, base_url="http://override") == "http://override"

    def test_first_server(self):
        document = {"servers": [{"url": "http://localhost:9292"}, {"url": "https://staging.api.com"}]}

        assert resolve_base_url(document) == "http://localhost:9292"

    def test_relative_server_joins_spec_url(self):
        document = {"servers": [{"url": "/api/v3"}]}

        resolved = resolve_base_url(
            document, spec_url="https://petstore3.swagger.io/api/v3/openapi.json"
        )

        assert resolved == "https://petstore3.swagger.io/api/v3"

    def test_relative_server_without_spec_url(self):
        with pytest.raises(InvalidSpecError):
            resolve_base_url({"servers": [{"url": "/api/v3"}]})

    def test_no_servers_and_no_spec_url(self):
        with pytest.raises(InvalidSpecError):
            resolve_base_url({"servers": []})

    def test_spec_origin_keeps_port(self):
        assert resolve_base_url({}, spec_url="http://localhost:8080/docs/openapi.json") == (
            "http://localhost:8080"
        )
