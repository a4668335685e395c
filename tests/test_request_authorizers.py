import pytest

from oauth_session.api.request import APIKeyAuthorizer, APIRequest


def test_with_header_replaces_case_insensitively():
    request = APIRequest("GET", "https://api.example.com", headers={"authorization": "old"})

    updated = request.with_header("Authorization", "Bearer new")

    assert updated.headers == {"Authorization": "Bearer new"}
    assert request.headers == {"authorization": "old"}
    assert updated.header("AUTHORIZATION") == "Bearer new"
    assert updated.header("Accept") is None


@pytest.mark.asyncio
async def test_api_key_authorizer_adds_header():
    authorizer = APIKeyAuthorizer("x-api-key", "k-123")
    request = APIRequest("POST", "https://api.example.com/items", body={"a": 1})

    authorized = await authorizer.authorize(request)

    assert authorized.headers["x-api-key"] == "k-123"
    assert authorized.body == {"a": 1}
    assert authorized.method == "POST"


@pytest.mark.parametrize("key,value", [("", "v"), ("k", "")])
def test_api_key_authorizer_requires_key_and_value(key, value):
    with pytest.raises(ValueError):
        APIKeyAuthorizer(key, value)
