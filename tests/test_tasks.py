import pytest

from tasktracker.errors import ConflictError
from tasktracker.models.task import Task
from tasktracker.models.user import User
from tasktracker.realtime.notifier import NotificationRouter
from tasktracker.realtime.registry import ConnectionRegistry
from tasktracker.schemas.task import TaskUpdate
from tasktracker.services import tasks as task_service


def _create(client, headers, **fields):
    body = {"title": "Write report"}
    body.update(fields)
    r = client.post("/api/tasks", json=body, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()["data"]["task"]


class TestCrud:
    def test_create_defaults(self, client, make_user):
        user, headers = make_user()
        task = _create(client, headers, title="  Write report  ", description="  quarterly ")

        assert task["title"] == "Write report"
        assert task["description"] == "quarterly"
        assert task["status"] == "open"
        assert task["priority"] == "medium"
        assert task["createdById"] == user["id"]
        assert task["creator"]["email"] == user["email"]
        assert "password" not in task["creator"]
        assert task["assignee"] is None
        assert task["completedAt"] is None

    def test_create_validates_input(self, client, make_user):
        _, headers = make_user()
        r = client.post("/api/tasks", json={"title": "", "priority": "urgent"}, headers=headers)
        assert r.status_code == 400
        fields = {e["field"] for e in r.json()["errors"]}
        assert {"title", "priority"} <= fields

    def test_create_with_missing_references(self, client, make_user):
        _, headers = make_user()
        r = client.post("/api/tasks", json={"title": "x", "assignedToId": 9999}, headers=headers)
        assert r.status_code == 404
        assert r.json()["message"] == "Assigned user not found"

        r = client.post("/api/tasks", json={"title": "x", "teamId": 9999}, headers=headers)
        assert r.status_code == 404
        assert r.json()["message"] == "Team not found"

    def test_get_task_detail(self, client, make_user):
        _, headers = make_user()
        task = _create(client, headers)

        r = client.get(f"/api/tasks/{task['id']}", headers=headers)
        assert r.status_code == 200
        detail = r.json()["data"]["task"]
        assert detail["comments"] == []
        assert detail["attachments"] == []

        assert client.get("/api/tasks/9999", headers=headers).status_code == 404
        assert client.get("/api/tasks/abc", headers=headers).status_code == 400

    def test_update_fields(self, client, make_user):
        _, headers = make_user()
        task = _create(client, headers)

        r = client.put(f"/api/tasks/{task['id']}", json={"status": "in_progress", "priority": "high"}, headers=headers)
        assert r.status_code == 200
        updated = r.json()["data"]["task"]
        assert updated["status"] == "in_progress"
        assert updated["priority"] == "high"
        assert updated["title"] == task["title"]
        assert updated["completedAt"] is None

        r = client.put(f"/api/tasks/{task['id']}", json={"status": "completed"}, headers=headers)
        assert r.json()["data"]["task"]["completedAt"] is not None

        # status may move back out of completed
        r = client.put(f"/api/tasks/{task['id']}", json={"status": "open"}, headers=headers)
        assert r.status_code == 200
        assert r.json()["data"]["task"]["status"] == "open"

    def test_delete_only_by_creator(self, client, make_user):
        creator, headers = make_user()
        assignee, assignee_headers = make_user()
        task = _create(client, headers, assignedToId=assignee["id"])

        r = client.delete(f"/api/tasks/{task['id']}", headers=assignee_headers)
        assert r.status_code == 403

        r = client.delete(f"/api/tasks/{task['id']}", headers=headers)
        assert r.status_code == 200
        assert client.get(f"/api/tasks/{task['id']}", headers=headers).status_code == 404

    def test_not_found_precedes_forbidden(self, client, make_user):
        _, headers = make_user()
        assert client.delete("/api/tasks/12345", headers=headers).status_code == 404
        assert client.patch("/api/tasks/12345/complete", headers=headers).status_code == 404


class TestListing:
    def test_default_filter_shows_own_tasks(self, client, make_user):
        alice, alice_headers = make_user()
        bob, bob_headers = make_user()
        carol, carol_headers = make_user()

        _create(client, alice_headers, title="alice 1")
        _create(client, alice_headers, title="alice 2")
        _create(client, bob_headers, title="bob for alice", assignedToId=alice["id"])
        _create(client, carol_headers, title="carol only")

        r = client.get("/api/tasks", headers=alice_headers)
        assert r.status_code == 200
        titles = {t["title"] for t in r.json()["data"]["tasks"]}
        assert titles == {"alice 1", "alice 2", "bob for alice"}

        r = client.get("/api/tasks", headers=bob_headers)
        assert {t["title"] for t in r.json()["data"]["tasks"]} == {"bob for alice"}

    def test_filters_search_and_sort(self, client, make_user):
        alice, headers = make_user()
        _create(client, headers, title="Banana", description="yellow fruit")
        _create(client, headers, title="Apple")
        _create(client, headers, title="Cherry", description="red fruit")

        r = client.get("/api/tasks?search=fruit&sortBy=title&order=asc", headers=headers)
        assert [t["title"] for t in r.json()["data"]["tasks"]] == ["Banana", "Cherry"]

        r = client.get(f"/api/tasks?assignedTo={alice['id']}", headers=headers)
        assert r.json()["data"]["tasks"] == []

        r = client.get("/api/tasks?status=open", headers=headers)
        assert r.json()["data"]["pagination"]["total"] >= 3

    def test_pagination(self, client, make_user):
        _, headers = make_user()
        for i in range(5):
            _create(client, headers, title=f"task {i}")

        r = client.get("/api/tasks?page=2&limit=2&sortBy=title&order=asc", headers=headers)
        data = r.json()["data"]
        assert [t["title"] for t in data["tasks"]] == ["task 2", "task 3"]
        assert data["pagination"] == {"total": 5, "page": 2, "limit": 2, "totalPages": 3}

    def test_team_filter_requires_membership(self, client, make_user):
        _, owner_headers = make_user()
        _, outsider_headers = make_user()
        team_id = client.post("/api/teams", json={"name": "Core"}, headers=owner_headers).json()["data"]["team"]["id"]
        _create(client, owner_headers, title="secret", teamId=team_id)

        r = client.get(f"/api/tasks?teamId={team_id}", headers=owner_headers)
        assert [t["title"] for t in r.json()["data"]["tasks"]] == ["secret"]

        r = client.get(f"/api/tasks?teamId={team_id}", headers=outsider_headers)
        assert r.status_code == 403
        assert r.json()["success"] is False

        assert client.get("/api/tasks?teamId=9999", headers=owner_headers).status_code == 404

    def test_invalid_sort_field(self, client, make_user):
        _, headers = make_user()
        r = client.get("/api/tasks?sortBy=password", headers=headers)
        assert r.status_code == 400
        assert r.json()["errors"][0]["field"] == "sortBy"


class TestAuthorization:
    def test_update_by_creator_or_assignee_only(self, client, make_user):
        creator, creator_headers = make_user()
        assignee, assignee_headers = make_user()
        _, stranger_headers = make_user()
        task = _create(client, creator_headers, assignedToId=assignee["id"])

        assert client.put(f"/api/tasks/{task['id']}", json={"title": "x"}, headers=stranger_headers).status_code == 403
        assert client.put(f"/api/tasks/{task['id']}", json={"title": "by assignee"}, headers=assignee_headers).status_code == 200
        assert client.patch(f"/api/tasks/{task['id']}/complete", headers=stranger_headers).status_code == 403

    def test_assignee_can_reassign_via_update_but_not_via_assign(self, client, make_user):
        creator, creator_headers = make_user()
        assignee, assignee_headers = make_user()
        other, _ = make_user()
        task = _create(client, creator_headers, assignedToId=assignee["id"])

        r = client.patch(f"/api/tasks/{task['id']}/assign", json={"userId": other["id"]}, headers=assignee_headers)
        assert r.status_code == 403

        r = client.put(f"/api/tasks/{task['id']}", json={"assignedToId": other["id"]}, headers=assignee_headers)
        assert r.status_code == 200
        assert r.json()["data"]["task"]["assignedToId"] == other["id"]

    def test_assign_to_missing_user(self, client, make_user):
        _, headers = make_user()
        task = _create(client, headers)
        r = client.patch(f"/api/tasks/{task['id']}/assign", json={"userId": 9999}, headers=headers)
        assert r.status_code == 404
        assert r.json()["message"] == "User not found"


class TestNotifications:
    def test_create_with_assignee_notifies_assignee_once(self, client, make_user, connect, transport):
        creator, headers = make_user()
        assignee, _ = make_user()
        connect(creator)
        conn = connect(assignee)

        task = _create(client, headers, assignedToId=assignee["id"])

        assert len(transport.sent) == 1
        [event] = transport.to(conn)
        assert event["type"] == "task_assigned"
        assert event["taskId"] == task["id"]
        assert "timestamp" in event

    def test_create_without_connection_is_silent(self, client, make_user, transport):
        _, headers = make_user()
        assignee, _ = make_user()
        r = client.post("/api/tasks", json={"title": "x", "assignedToId": assignee["id"]}, headers=headers)
        assert r.status_code == 201
        assert transport.sent == []

    def test_reassign_notifies_new_and_previous(self, client, make_user, connect, transport):
        creator, headers = make_user()
        x, _ = make_user()
        y, _ = make_user()
        task = _create(client, headers, assignedToId=x["id"])
        conn_x, conn_y = connect(x), connect(y)
        connect(creator)

        r = client.patch(f"/api/tasks/{task['id']}/assign", json={"userId": y["id"]}, headers=headers)
        assert r.status_code == 200

        assert len(transport.sent) == 2
        assert [e["type"] for e in transport.to(conn_y)] == ["task_assigned"]
        assert [e["type"] for e in transport.to(conn_x)] == ["task_updated"]

    def test_assign_to_current_assignee_sends_no_assignment(self, client, make_user, connect, transport):
        _, headers = make_user()
        x, _ = make_user()
        task = _create(client, headers, assignedToId=x["id"])
        connect(x)

        r = client.patch(f"/api/tasks/{task['id']}/assign", json={"userId": x["id"]}, headers=headers)
        assert r.status_code == 200
        r = client.put(f"/api/tasks/{task['id']}", json={"assignedToId": x["id"], "title": "same"}, headers=headers)
        assert r.status_code == 200

        # the plain update still tells the assignee about the edit
        assert [e["type"] for _, _, e in transport.sent] == ["task_updated"]

    def test_update_reassignment_notifies_self_assignee(self, client, make_user, connect, transport):
        creator, headers = make_user()
        x, _ = make_user()
        task = _create(client, headers, assignedToId=x["id"])
        conn_creator, conn_x = connect(creator), connect(x)

        r = client.put(f"/api/tasks/{task['id']}", json={"assignedToId": creator["id"]}, headers=headers)
        assert r.status_code == 200

        assert [e["type"] for e in transport.to(conn_creator)] == ["task_assigned"]
        assert [e["type"] for e in transport.to(conn_x)] == ["task_updated"]

    def test_update_skips_actor_assignee(self, client, make_user, connect, transport):
        creator, headers = make_user()
        assignee, assignee_headers = make_user()
        task = _create(client, headers, assignedToId=assignee["id"])
        conn_creator, conn_assignee = connect(creator), connect(assignee)

        client.put(f"/api/tasks/{task['id']}", json={"title": "by assignee"}, headers=assignee_headers)
        assert transport.sent == []

        client.put(f"/api/tasks/{task['id']}", json={"title": "by creator"}, headers=headers)
        assert [e["type"] for e in transport.to(conn_assignee)] == ["task_updated"]
        assert transport.to(conn_creator) == []

    def test_complete_by_other_notifies_creator(self, client, make_user, connect, transport):
        creator, headers = make_user()
        assignee, assignee_headers = make_user()
        task = _create(client, headers, assignedToId=assignee["id"])
        conn_creator = connect(creator)
        connect(assignee)

        r = client.patch(f"/api/tasks/{task['id']}/complete", headers=assignee_headers)
        assert r.status_code == 200
        done = r.json()["data"]["task"]
        assert done["status"] == "completed"
        assert done["completedAt"] is not None

        assert len(transport.sent) == 1
        [event] = transport.to(conn_creator)
        assert event["type"] == "task_completed"

    def test_complete_by_creator_notifies_no_one(self, client, make_user, connect, transport):
        creator, headers = make_user()
        assignee, _ = make_user()
        task = _create(client, headers, assignedToId=assignee["id"])
        connect(creator)
        connect(assignee)

        r = client.patch(f"/api/tasks/{task['id']}/complete", headers=headers)
        assert r.status_code == 200
        assert transport.sent == []


def test_stale_write_is_reported_as_conflict(client, make_user, db):
    from tasktracker.database import SessionLocal

    creator, headers = make_user()
    task_id = _create(client, headers)["id"]
    notifier = NotificationRouter(ConnectionRegistry())

    stale = SessionLocal()
    try:
        stale_actor = stale.get(User, creator["id"])
        stale.get(Task, task_id)

        fresh_actor = db.get(User, creator["id"])
        task_service.complete_task(db, notifier, fresh_actor, task_id)

        with pytest.raises(ConflictError):
            task_service.update_task(stale, notifier, stale_actor, task_id, TaskUpdate(title="late edit"))
    finally:
        stale.close()

    assert db.get(Task, task_id).title == "Write report"
