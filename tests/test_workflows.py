from __future__ import annotations

from datetime import datetime

from fastapi.testclient import TestClient

NEWS_WORKFLOW = {
    "name": "Daily news digest",
    "description": "summarizing news articles",
    "url": "https://news.example.com/today",
}


def _create(client: TestClient, **overrides: str) -> dict[str, object]:
    response = client.post("/workflows", json={**NEWS_WORKFLOW, **overrides})
    assert response.status_code == 200
    return response.json()


def test_create_then_get_round_trip(client: TestClient) -> None:
    created = _create(client)
    assert set(created) == {"id", "name", "description", "url"}
    assert created["id"] >= 1

    fetched = client.get(f"/workflows/{created['id']}")
    assert fetched.status_code == 200
    payload = fetched.json()
    assert payload["name"] == NEWS_WORKFLOW["name"]
    assert payload["description"] == NEWS_WORKFLOW["description"]
    assert payload["url"] == NEWS_WORKFLOW["url"]
    assert payload["createdAt"] == payload["modifiedAt"]


def test_list_returns_workflows_in_creation_order(client: TestClient) -> None:
    assert client.get("/workflows").json() == []

    first = _create(client, name="First")
    second = _create(client, name="Second")

    response = client.get("/workflows")
    assert response.status_code == 200
    assert [item["id"] for item in response.json()] == [first["id"], second["id"]]
    assert [item["name"] for item in response.json()] == ["First", "Second"]


def test_create_rejects_empty_description_without_storing(client: TestClient) -> None:
    response = client.post("/workflows", json={**NEWS_WORKFLOW, "description": ""})
    assert response.status_code == 400
    assert response.json() == {"error": "Name, description, and URL are required."}
    assert client.get("/workflows").json() == []


def test_create_rejects_missing_url(client: TestClient) -> None:
    response = client.post(
        "/workflows",
        json={"name": NEWS_WORKFLOW["name"], "description": NEWS_WORKFLOW["description"]},
    )
    assert response.status_code == 400
    assert client.get("/workflows").json() == []


def test_create_rejects_malformed_body(client: TestClient) -> None:
    response = client.post(
        "/workflows",
        content="not json",
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 400
    assert "error" in response.json()


def test_get_unknown_workflow_returns_404(client: TestClient) -> None:
    for workflow_id in ("999", "abc", "0"):
        response = client.get(f"/workflows/{workflow_id}")
        assert response.status_code == 404
        assert response.json() == {"error": "Workflow not found"}


def test_update_only_name_coalesces_other_fields(client: TestClient) -> None:
    created = _create(client)
    before = client.get(f"/workflows/{created['id']}").json()

    response = client.put(f"/workflows/{created['id']}", json={"name": "Evening digest"})
    assert response.status_code == 200
    updated = response.json()
    assert updated["name"] == "Evening digest"
    assert updated["description"] == NEWS_WORKFLOW["description"]
    assert updated["url"] == NEWS_WORKFLOW["url"]
    assert updated["createdAt"] == before["createdAt"]
    assert datetime.fromisoformat(updated["modifiedAt"]) > datetime.fromisoformat(
        before["modifiedAt"]
    )


def test_update_treats_empty_strings_as_not_provided(client: TestClient) -> None:
    created = _create(client)

    response = client.put(
        f"/workflows/{created['id']}",
        json={"name": "", "description": "", "url": "https://news.example.com/tomorrow"},
    )
    assert response.status_code == 200
    updated = response.json()
    assert updated["name"] == NEWS_WORKFLOW["name"]
    assert updated["description"] == NEWS_WORKFLOW["description"]
    assert updated["url"] == "https://news.example.com/tomorrow"


def test_update_unknown_workflow_returns_404(client: TestClient) -> None:
    response = client.put("/workflows/42", json={"name": "Nobody"})
    assert response.status_code == 404
    assert response.json() == {"error": "Workflow not found"}


def test_delete_is_idempotent_at_the_interface(client: TestClient) -> None:
    created = _create(client)

    first = client.delete(f"/workflows/{created['id']}")
    assert first.status_code == 200
    assert first.json() == {"message": "Workflow deleted successfully"}

    second = client.delete(f"/workflows/{created['id']}")
    assert second.status_code == 404
    assert second.json() == {"error": "Workflow not found"}

    assert client.get(f"/workflows/{created['id']}").status_code == 404
    assert client.delete("/workflows/12345").status_code == 404
