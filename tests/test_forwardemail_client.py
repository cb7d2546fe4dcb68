import json
from unittest.mock import MagicMock

import pytest
import requests

from fwdmail.config import ForwardEmailConfig
from fwdmail.exceptions import ForwardEmailError
from fwdmail.forwardemail_client import Alias, ForwardEmailClient
from tests.fakes import make_alias


def make_response(status_code=200, body=None, headers=None, reason="OK"):
    response = requests.Response()
    response.status_code = status_code
    response.reason = reason
    response._content = json.dumps(body).encode() if body is not None else b""
    response.headers.update(headers or {})
    return response


@pytest.fixture
def client():
    client = ForwardEmailClient(ForwardEmailConfig(api_key="test-key", base_url="https://api.example.test/"))
    client._session = MagicMock()
    return client


def last_call(client):
    args, kwargs = client._session.request.call_args
    return args[0], args[1], kwargs


def test_session_uses_basic_auth_with_api_key():
    client = ForwardEmailClient(ForwardEmailConfig(api_key="test-key"))
    session = client._get_session()
    assert session.auth == ("test-key", "")
    assert session.headers["Accept"] == "application/json"
    client.close()
    assert client._session is None


def test_alias_from_dict():
    alias = Alias.from_dict({
        "id": "a1",
        "name": "sales",
        "recipients": ["a@x.com"],
        "labels": None,
        "is_enabled": False,
        "domain": {"id": "d1", "name": "x.com"},
    })
    assert alias == Alias(id="a1", name="sales", recipients=("a@x.com",), is_enabled=False, domain_id="d1")


def test_list_aliases(client):
    client._session.request.return_value = make_response(body=[
        {"id": "1", "name": "sales", "recipients": ["a@x.com"], "is_enabled": True, "labels": ["l"]},
        {"id": "2", "name": "info", "recipients": ["b@x.com"], "is_enabled": False},
    ])
    aliases = client.list_aliases("x.com")

    method, url, kwargs = last_call(client)
    assert method == "GET"
    assert url == "https://api.example.test/v1/domains/x.com/aliases"
    assert kwargs["params"] == {"limit": 1000}
    assert kwargs["timeout"] == 30.0
    assert [a.name for a in aliases] == ["sales", "info"]
    assert aliases[0].labels == ("l",)


def test_list_aliases_requires_domain(client):
    with pytest.raises(ValueError):
        client.list_aliases("")


def test_create_alias_payload(client):
    client._session.request.return_value = make_response(
        body={"id": "new", "name": "sales", "recipients": ["a@x.com"], "is_enabled": False}
    )
    created = client.create_alias("x.com", make_alias("sales", ["a@x.com"], enabled=False, labels=["l"]))

    method, url, kwargs = last_call(client)
    assert method == "POST"
    assert url.endswith("/v1/domains/x.com/aliases")
    assert kwargs["json"] == {"name": "sales", "recipients": ["a@x.com"], "is_enabled": False, "labels": ["l"]}
    assert created.id == "new"


@pytest.mark.parametrize("recipients", [(), ("a@x.com", "  ")])
def test_create_alias_rejects_bad_recipients(client, recipients):
    with pytest.raises(ValueError):
        client.create_alias("x.com", make_alias("sales", recipients))
    client._session.request.assert_not_called()


def test_update_alias_omits_unset_fields(client):
    client._session.request.return_value = make_response(body={"id": "a1", "name": "sales"})
    client.update_alias("x.com", "a1", enabled=False)

    method, url, kwargs = last_call(client)
    assert method == "PUT"
    assert url.endswith("/v1/domains/x.com/aliases/a1")
    assert kwargs["json"] == {"is_enabled": False}


def test_update_alias_sends_empty_labels(client):
    client._session.request.return_value = make_response(body={"id": "a1", "name": "sales"})
    client.update_alias("x.com", "a1", recipients=["a@x.com"], enabled=True, labels=[])
    assert last_call(client)[2]["json"] == {"recipients": ["a@x.com"], "is_enabled": True, "labels": []}


def test_get_alias(client):
    client._session.request.return_value = make_response(
        body={"id": "a1", "name": "sales", "recipients": ["a@x.com"], "is_enabled": False}
    )
    alias = client.get_alias("x.com", "a1")

    method, url, _ = last_call(client)
    assert method == "GET"
    assert url.endswith("/v1/domains/x.com/aliases/a1")
    assert alias.name == "sales"
    assert alias.is_enabled is False


def test_update_alias_sends_description(client):
    client._session.request.return_value = make_response(body={"id": "a1", "name": "sales"})
    client.update_alias("x.com", "a1", description="Vertrieb")
    assert last_call(client)[2]["json"] == {"description": "Vertrieb"}


def test_delete_alias(client):
    client._session.request.return_value = make_response(status_code=200)
    client.delete_alias("x.com", "a1")
    method, url, _ = last_call(client)
    assert method == "DELETE"
    assert url.endswith("/v1/domains/x.com/aliases/a1")


def test_delete_alias_requires_id(client):
    with pytest.raises(ValueError):
        client.delete_alias("x.com", "")


def test_api_error_is_parsed(client):
    client._session.request.return_value = make_response(
        status_code=404, body={"message": "Alias does not exist", "code": "E_NOT_FOUND"}, reason="Not Found"
    )
    with pytest.raises(ForwardEmailError) as exc_info:
        client.delete_alias("x.com", "a1")

    error = exc_info.value
    assert error.status_code == 404
    assert error.error_type == "NotFound"
    assert str(error) == "NotFound (E_NOT_FOUND): Alias does not exist"


def test_api_error_without_json_body(client):
    client._session.request.return_value = make_response(status_code=502, reason="Bad Gateway")
    with pytest.raises(ForwardEmailError) as exc_info:
        client.list_aliases("x.com")
    assert exc_info.value.message == "Bad Gateway"
    assert exc_info.value.error_type == "ServerError"


def test_rate_limit_error_carries_retry_after(client):
    client._session.request.return_value = make_response(status_code=429, headers={"Retry-After": "60"})
    with pytest.raises(ForwardEmailError) as exc_info:
        client.list_aliases("x.com")
    assert exc_info.value.error_type == "RateLimit"
    assert exc_info.value.retry_after == "60"


def test_unmapped_client_error_is_validation_error():
    assert ForwardEmailError(422, "bad").error_type == "ValidationError"


def test_connection_error_becomes_forwardemail_error(client):
    client._session.request.side_effect = requests.ConnectionError("down")
    with pytest.raises(ForwardEmailError) as exc_info:
        client.list_aliases("x.com")
    assert exc_info.value.status_code == 0


def test_test_connection(client):
    client._session.request.return_value = make_response(body={"email": "me@x.com"})
    assert client.test_connection() is True
    assert last_call(client)[1].endswith("/v1/account")

    client._session.request.return_value = make_response(status_code=401, body={"message": "Invalid API token"})
    assert client.test_connection() is False
