from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from growth_assistant.main import create_app
from growth_assistant.services.container import get_services
from growth_assistant.services.response_helpers import (
    CONFIRM_DELETE,
    ONBOARDING_ASK_WEBSITE,
    ONBOARDING_PROFILE_CREATED,
)

from conftest import USER_ID


@pytest.fixture
def client(rule_services) -> TestClient:
    app = create_app()
    app.dependency_overrides[get_services] = lambda: rule_services
    with TestClient(app) as test_client:
        yield test_client


def _send(client: TestClient, message: str) -> str:
    response = client.post("/api/chat/send", json={"userId": USER_ID, "message": message})
    assert response.status_code == 200, response.text
    payload = response.json()
    assert payload["success"] is True
    return payload["response"]["content"]


def test_health(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_first_message_starts_onboarding(client: TestClient) -> None:
    assert _send(client, "Hi there") == ONBOARDING_ASK_WEBSITE


def test_blank_message_is_rejected(client: TestClient) -> None:
    response = client.post("/api/chat/send", json={"userId": USER_ID, "message": "   "})

    assert response.status_code == 400
    payload = response.json()
    assert payload["success"] is False
    assert payload["error"]["code"] == "BAD_REQUEST"
    assert payload["debug"]["trace_id"]


def test_missing_user_id_fails_validation(client: TestClient) -> None:
    response = client.post("/api/chat/send", json={"message": "Hi"})

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "BAD_REQUEST"


def test_messages_are_listed_oldest_first(client: TestClient) -> None:
    _send(client, "Hi there")

    response = client.get("/api/chat/messages", params={"userId": USER_ID})

    assert response.status_code == 200
    messages = response.json()["messages"]
    assert [(item["role"], item["content"]) for item in messages] == [
        ("user", "Hi there"),
        ("assistant", ONBOARDING_ASK_WEBSITE),
    ]


def test_delete_flow_over_http(client: TestClient, rule_services) -> None:
    assert _send(client, "Our site is https://acme.example.com") == ONBOARDING_PROFILE_CREATED.format(
        business_name="Acme Plumbing"
    )

    assert _send(client, "Delete the contact page") == CONFIRM_DELETE.format(title="Contact", slug="contact")
    reply = _send(client, "Yes, delete it")

    assert reply.startswith("I've deleted the page")
    assert rule_services.website.get_page(USER_ID, "contact") is None


def test_suggestions_after_onboarding(client: TestClient) -> None:
    _send(client, "Our site is https://acme.example.com")

    response = client.get("/api/suggestions", params={"userId": USER_ID})

    assert response.status_code == 200
    suggestions = response.json()["suggestions"]
    assert suggestions
    assert {"id", "text", "category", "priority"} <= set(suggestions[0])


def test_suggestions_require_user_id(client: TestClient) -> None:
    assert client.get("/api/suggestions").status_code == 422
