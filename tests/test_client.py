import pytest

from openapi_gateway.client import REQUEST_HEADERS, Client, Err, Ok
from openapi_gateway.loader import from_openapi
from openapi_gateway.operation import Operation, build_parameter
from openapi_gateway.registry import OperationRegistry
from openapi_gateway.transport import Response


@pytest.fixture
def client(users_spec, fake_http):
    return from_openapi(users_spec, http=fake_http)


def test_bootstraps_client_from_spec(client, fake_http):
    assert client.base_url == "http://localhost:9292"
    assert "update_user" in client
    assert len(client) == 3

    response = client.update_user(id=10, name="John", age=30, file="filedata")

    assert response.body == {"ok": True, "id": 123}
    assert fake_http.calls == [
        {
            "verb": "put",
            "url": "http://localhost:9292/users/10",
            "body": {"name": "John", "age": 30, "file": "filedata"},
            "headers": REQUEST_HEADERS,
        }
    ]


def test_operation_lookup(client):
    op = client["update_user"]

    assert op.name == "update_user"
    assert op.description == "Update a user"
    name = op.parameter("name")
    assert name.description == "User name (eg Joe)"
    assert name.location == "body"
    assert name.required is True
    assert name.type == "string"


def test_query_parameters_are_urlencoded(client, fake_http):
    client.users(q="bill smith", cat="admin", unknown="dropped")

    call = fake_http.calls[0]
    assert call["verb"] == "get"
    assert call["url"] == "http://localhost:9292/users?q=bill+smith&cat=admin"
    assert call["body"] == {}


def test_to_llm_tools(client, fake_http):
    tools = client.to_llm_tools()

    assert [tool.name for tool in tools] == ["users", "create_user", "update_user"]
    assert [tool.description for tool in tools] == ["List users", "Create a user", "Update a user"]
    assert [p.name for p in tools[-1].parameters] == ["id", "name", "age", "file"]
    assert tools[-1].call({"id": 10, "name": "John", "age": 30}) == {"ok": True, "id": 123}


def test_run_does_not_mutate_arguments(client):
    args = {"id": 10, "name": "John"}

    client["update_user"].run(args)

    assert args == {"id": 10, "name": "John"}


def test_with_headers_derives_a_new_client(client, fake_http):
    derived = client.with_headers({"Authorization": "Bearer abc"})

    derived.users()
    client.users()

    assert derived is not client
    assert client.headers == {}
    assert fake_http.calls[0]["headers"]["Authorization"] == "Bearer abc"
    assert "Authorization" not in fake_http.calls[1]["headers"]
    assert fake_http.calls[0]["headers"]["Accept"] == "application/json"


def test_invoke_wraps_results(client, fake_http):
    assert client["users"].invoke({}) == Ok({"ok": True, "id": 123})

    fake_http.response = ConnectionError("connection refused")

    assert client["users"].invoke({}) == Err("connection refused")


def test_unknown_operations(client):
    with pytest.raises(KeyError):
        client["nope"]
    with pytest.raises(AttributeError):
        client.nope()


def test_base_url_with_path_prefix(fake_http):
    registry = OperationRegistry().add(
        Operation(name="pet", verb="get", path="/pets/{id}", parameters=(build_parameter("id", "path"),))
    )
    client = Client(registry, base_url="https://api.example.com/v1/", http=fake_http)

    client.pet(id=7)

    assert fake_http.calls[0]["url"] == "https://api.example.com/v1/pets/7"


def test_query_values_use_json_literals_and_repeat_lists(fake_http):
    registry = OperationRegistry().add(
        Operation(
            name="orders",
            verb="get",
            path="/orders",
            parameters=(build_parameter("active", "query"), build_parameter("tag", "query")),
        )
    )
    client = Client(registry, base_url="http://api.test", http=fake_http)

    client.orders(active=True, tag=["red", "blue"])

    assert fake_http.calls[0]["url"] == "http://api.test/orders?active=true&tag=red&tag=blue"


def test_repr(client):
    assert repr(client) == '<Client http://localhost:9292 "Users API"/0.0.1 [3 operations]>'


def test_call_returns_non_json_bodies(client, fake_http):
    fake_http.response = Response(200, "text/plain", "pong")

    assert client["users"].call() == "pong"
