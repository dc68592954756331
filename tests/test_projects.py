from uuid import uuid4

import pytest

from freelance_hub.core.errors import StorageError
from freelance_hub.models.schemas import Principal, Role


def _create_project(api_client, headers, **overrides):
    payload = {"title": "Landing page", "description": "Build a landing page", "budget": 500, "questions": ["Why you?"]}
    payload.update(overrides)
    response = api_client.post("/projects/", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def client_headers(auth_headers, owner):
    return auth_headers(owner)


@pytest.fixture
def freelancer_headers(auth_headers, freelancer):
    return auth_headers(freelancer)


# --- End-to-end hiring flow ---

def test_post_apply_accept_and_report_progress(api_client, client_headers, freelancer_headers, freelancer):
    """A client posts, a freelancer applies and is accepted, then reports progress."""
    project = _create_project(api_client, client_headers)
    assert project["status"] == "open"
    assert project["freelancer_user_id"] is None
    assert [q["text"] for q in project["questions"]] == ["Why you?"]

    response = api_client.post(
        f"/projects/{project['project_id']}/apply", json={"answers": ["Because"]}, headers=freelancer_headers
    )
    assert response.status_code == 201
    application = response.json()["applications"][0]
    assert application["answers"] == [{"question_text": "Why you?", "answer_text": "Because"}]
    assert application["status"] == "pending"

    response = api_client.put(
        f"/projects/{project['project_id']}/applications/{application['application_id']}",
        json={"status": "accepted"},
        headers=client_headers,
    )
    assert response.status_code == 200
    accepted = response.json()
    assert accepted["status"] == "in_progress"
    assert accepted["freelancer_user_id"] == str(freelancer.id)

    response = api_client.post(
        f"/projects/{project['project_id']}/update", json={"progress": 50, "note": "halfway"}, headers=freelancer_headers
    )
    assert response.status_code == 200

    response = api_client.get(f"/projects/{project['project_id']}/updates", headers=client_headers)
    assert response.status_code == 200
    listed = response.json()
    assert len(listed) == 1
    assert listed[0]["progress"] == 50
    assert listed[0]["note"] == "halfway"


# --- Tests for POST /projects/ ---

def test_create_project_requires_token(api_client):
    response = api_client.post("/projects/", json={"title": "x", "description": "y", "budget": 1})
    assert response.status_code == 401


def test_create_project_invalid_token(api_client):
    response = api_client.post(
        "/projects/", json={"title": "x", "description": "y", "budget": 1},
        headers={"Authorization": "Bearer not-a-token"},
    )
    assert response.status_code == 401
    assert response.json()["detail"] == "Could not validate credentials"


def test_create_project_unknown_user(api_client, auth_headers):
    """A well-formed token for a user that does not exist is rejected."""
    ghost = Principal(id=uuid4(), role=Role.CLIENT)
    response = api_client.post("/projects/", json={"title": "x", "description": "y", "budget": 1}, headers=auth_headers(ghost))
    assert response.status_code == 401


def test_create_project_forbidden_for_freelancer(api_client, freelancer_headers):
    response = api_client.post(
        "/projects/", json={"title": "x", "description": "y", "budget": 1}, headers=freelancer_headers
    )
    assert response.status_code == 403


def test_create_project_missing_title(api_client, client_headers):
    response = api_client.post("/projects/", json={"description": "y", "budget": 10}, headers=client_headers)
    assert response.status_code == 400
    assert "title" in response.json()["detail"]


def test_create_project_non_positive_budget(api_client, client_headers):
    response = api_client.post(
        "/projects/", json={"title": "x", "description": "y", "budget": 0}, headers=client_headers
    )
    assert response.status_code == 400


@pytest.mark.parametrize("budget", ["NaN", "Infinity"])
def test_create_project_non_finite_budget(api_client, client_headers, budget):
    # Python's JSON decoder accepts these literals, so they reach the service
    body = '{"title": "t", "description": "d", "budget": %s}' % budget
    response = api_client.post(
        "/projects/", content=body, headers={**client_headers, "Content-Type": "application/json"}
    )
    assert response.status_code == 400
    assert api_client.get("/projects/", headers=client_headers).json() == []


# --- Tests for GET /projects/ and /projects/{id} ---

def test_list_projects_with_status_filter(api_client, client_headers, freelancer, freelancer_headers):
    open_project = _create_project(api_client, client_headers, title="Still open")
    started = _create_project(api_client, client_headers, title="Started")
    api_client.put(f"/projects/{started['project_id']}/assign/{freelancer.id}", headers=client_headers)

    response = api_client.get("/projects/", params={"status": "open"}, headers=freelancer_headers)
    assert response.status_code == 200
    assert [p["project_id"] for p in response.json()] == [open_project["project_id"]]

    response = api_client.get("/projects/", headers=freelancer_headers)
    assert {p["project_id"] for p in response.json()} == {open_project["project_id"], started["project_id"]}


def test_list_projects_rejects_unknown_status(api_client, client_headers):
    response = api_client.get("/projects/", params={"status": "archived"}, headers=client_headers)
    assert response.status_code == 422


def test_get_project_details(api_client, client_headers, freelancer_headers):
    project = _create_project(api_client, client_headers)
    response = api_client.get(f"/projects/{project['project_id']}", headers=freelancer_headers)
    assert response.status_code == 200
    assert response.json()["title"] == "Landing page"


def test_get_project_not_found(api_client, client_headers):
    response = api_client.get(f"/projects/{uuid4()}", headers=client_headers)
    assert response.status_code == 404
    assert response.json()["detail"] == "Project not found"


def test_my_projects(api_client, client_headers, freelancer, freelancer_headers):
    project = _create_project(api_client, client_headers)

    assert api_client.get("/projects/my-projects", headers=freelancer_headers).json() == []

    api_client.put(f"/projects/{project['project_id']}/assign/{freelancer.id}", headers=client_headers)
    for headers in (client_headers, freelancer_headers):
        response = api_client.get("/projects/my-projects", headers=headers)
        assert response.status_code == 200
        assert [p["project_id"] for p in response.json()] == [project["project_id"]]


# --- Tests for PUT/DELETE /projects/{id} ---

def test_update_project_details(api_client, client_headers):
    project = _create_project(api_client, client_headers)
    response = api_client.put(f"/projects/{project['project_id']}", json={"budget": 650}, headers=client_headers)
    assert response.status_code == 200
    assert response.json()["budget"] == 650
    assert response.json()["version"] == 2


def test_update_project_forbidden_not_owner(api_client, client_headers, freelancer_headers):
    project = _create_project(api_client, client_headers)
    response = api_client.put(f"/projects/{project['project_id']}", json={"title": "Mine"}, headers=freelancer_headers)
    assert response.status_code == 403


def test_delete_project(api_client, client_headers):
    project = _create_project(api_client, client_headers)
    response = api_client.delete(f"/projects/{project['project_id']}", headers=client_headers)
    assert response.status_code == 204
    assert api_client.get(f"/projects/{project['project_id']}", headers=client_headers).status_code == 404


def test_delete_project_not_found(api_client, client_headers):
    response = api_client.delete(f"/projects/{uuid4()}", headers=client_headers)
    assert response.status_code == 404


# --- Tests for status changes and assignment ---

def test_complete_project(api_client, client_headers, freelancer):
    project = _create_project(api_client, client_headers)
    api_client.put(f"/projects/{project['project_id']}/assign/{freelancer.id}", headers=client_headers)

    response = api_client.put(
        f"/projects/{project['project_id']}/status", json={"status": "completed"}, headers=client_headers
    )
    assert response.status_code == 200
    assert response.json()["status"] == "completed"


def test_illegal_status_change_is_conflict(api_client, client_headers):
    project = _create_project(api_client, client_headers)
    response = api_client.put(
        f"/projects/{project['project_id']}/status", json={"status": "completed"}, headers=client_headers
    )
    assert response.status_code == 409


def test_assign_unknown_freelancer(api_client, client_headers):
    project = _create_project(api_client, client_headers)
    response = api_client.put(f"/projects/{project['project_id']}/assign/{uuid4()}", headers=client_headers)
    assert response.status_code == 404


def test_assign_by_non_owner(api_client, client_headers, freelancer, freelancer_headers):
    project = _create_project(api_client, client_headers)
    response = api_client.put(f"/projects/{project['project_id']}/assign/{freelancer.id}", headers=freelancer_headers)
    assert response.status_code == 403


# --- Tests for applications ---

def test_client_cannot_apply(api_client, client_headers):
    project = _create_project(api_client, client_headers)
    response = api_client.post(f"/projects/{project['project_id']}/apply", json={"answers": ["Me"]}, headers=client_headers)
    assert response.status_code == 403


def test_apply_twice_is_conflict(api_client, client_headers, freelancer_headers):
    project = _create_project(api_client, client_headers)
    url = f"/projects/{project['project_id']}/apply"
    assert api_client.post(url, json={"answers": ["Me"]}, headers=freelancer_headers).status_code == 201
    assert api_client.post(url, json={"answers": ["Me"]}, headers=freelancer_headers).status_code == 409


def test_apply_to_missing_project(api_client, freelancer_headers):
    response = api_client.post(f"/projects/{uuid4()}/apply", json={"answers": []}, headers=freelancer_headers)
    assert response.status_code == 404


def test_decision_with_unknown_status_value(api_client, client_headers, freelancer_headers):
    project = _create_project(api_client, client_headers)
    applied = api_client.post(
        f"/projects/{project['project_id']}/apply", json={"answers": ["Me"]}, headers=freelancer_headers
    ).json()
    application_id = applied["applications"][0]["application_id"]

    response = api_client.put(
        f"/projects/{project['project_id']}/applications/{application_id}",
        json={"status": "maybe"},
        headers=client_headers,
    )
    assert response.status_code == 422


# --- Tests for progress updates ---

def test_unassigned_freelancer_cannot_post_update(api_client, client_headers, freelancer, auth_headers, other_freelancer):
    project = _create_project(api_client, client_headers)
    api_client.put(f"/projects/{project['project_id']}/assign/{freelancer.id}", headers=client_headers)

    response = api_client.post(
        f"/projects/{project['project_id']}/update",
        json={"progress": 10, "note": "sneaky"},
        headers=auth_headers(other_freelancer),
    )
    assert response.status_code == 403


def test_post_update_out_of_range(api_client, client_headers, freelancer, freelancer_headers):
    project = _create_project(api_client, client_headers)
    api_client.put(f"/projects/{project['project_id']}/assign/{freelancer.id}", headers=client_headers)

    response = api_client.post(
        f"/projects/{project['project_id']}/update", json={"progress": 150, "note": "overachiever"},
        headers=freelancer_headers,
    )
    assert response.status_code == 400


def test_updates_feed(api_client, client_headers, freelancer, freelancer_headers):
    first = _create_project(api_client, client_headers, title="First")
    second = _create_project(api_client, client_headers, title="Second")
    for project in (first, second):
        api_client.put(f"/projects/{project['project_id']}/assign/{freelancer.id}", headers=client_headers)

    api_client.post(f"/projects/{first['project_id']}/update", json={"progress": 10, "note": "a"}, headers=freelancer_headers)
    api_client.post(f"/projects/{second['project_id']}/update", json={"progress": 20, "note": "b"}, headers=freelancer_headers)

    response = api_client.get("/projects/updates", headers=client_headers)
    assert response.status_code == 200
    feed = response.json()
    assert [(item["project_title"], item["note"]) for item in feed] == [("Second", "b"), ("First", "a")]

    assert api_client.get("/projects/updates", headers=freelancer_headers).status_code == 403


def test_storage_failure_is_service_unavailable(api_client, client_headers, firestore_ops, monkeypatch):
    def unavailable(*args, **kwargs):
        raise StorageError("Could not list projects")

    monkeypatch.setattr(firestore_ops, "get_all", unavailable)

    response = api_client.get("/projects/", headers=client_headers)
    assert response.status_code == 503
    assert response.json()["detail"] == "Could not list projects"
