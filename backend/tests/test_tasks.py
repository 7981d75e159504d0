"""
Task state tests.

Covers creation, field-level updates and the activity they record,
assignee and watcher sets, reactions and the paginated activity log.
"""

import uuid

import pytest

from helpers import API, auth, create_task, team
from trackspace.models import Task, TaskPriority, TaskStatus, User
from trackspace.schemas.task import TaskUpdateRequest
from trackspace.services.activity_service import ActivityPipeline
from trackspace.services.task_service import TaskService


async def activities(client, user, task_id, **params) -> dict:
    resp = await client.get(f"{API}/tasks/{task_id}/activities", params=params, headers=auth(user))
    assert resp.status_code == 200, f"List activities failed: {resp.text}"
    return resp.json()


# ---------------------------------------------------------------------------
# 1. Create
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_task_defaults(client):
    org, project, (alice, bob) = await team(client, "Alice Owner", "Bob Member")

    task = await create_task(client, alice, project["id"], "  Write docs  ", assignees=[bob["id"]])
    assert task["title"] == "Write docs"
    assert task["status"] == "todo"
    assert task["priority"] == "medium"
    assert task["creator"]["id"] == alice["id"]
    assert [a["id"] for a in task["assignees"]] == [bob["id"]]
    assert [w["id"] for w in task["watchers"]] == [alice["id"]]
    assert task["comments"] == []

    log = await activities(client, alice, task["id"])
    assert [a["action"] for a in log["activities"]] == ["created"]
    assert log["activities"][0]["performed_by"]["id"] == alice["id"]


@pytest.mark.asyncio
async def test_create_task_title_validation(client):
    org, project, (alice,) = await team(client, "Alice Owner")

    blank = await client.post(
        f"{API}/tasks", json={"project_id": project["id"], "title": "   "}, headers=auth(alice)
    )
    assert blank.status_code == 400
    assert blank.json()["detail"]["code"] == "TITLE_REQUIRED"

    empty = await client.post(
        f"{API}/tasks", json={"project_id": project["id"], "title": ""}, headers=auth(alice)
    )
    assert empty.status_code == 400
    assert empty.json()["detail"]["code"] == "TITLE_REQUIRED"

    # Updates reject an empty title the same way
    task = await create_task(client, alice, project["id"])
    cleared = await client.patch(f"{API}/tasks/{task['id']}", json={"title": ""}, headers=auth(alice))
    assert cleared.status_code == 400
    assert cleared.json()["detail"]["code"] == "FIELD_REQUIRED"

    bad_status = await client.post(
        f"{API}/tasks",
        json={"project_id": project["id"], "title": "Ship", "status": "blocked"},
        headers=auth(alice),
    )
    assert bad_status.status_code == 422


@pytest.mark.asyncio
async def test_camel_case_request_fields_accepted(client):
    org, project, (alice, bob) = await team(client, "Alice Owner", "Bob Member")
    workspace_id = project["workspace_id"]

    created = await client.post(
        f"{API}/projects",
        json={"workspace": workspace_id, "name": "Roadmap", "startDate": "2026-11-01"},
        headers=auth(alice),
    )
    assert created.status_code == 201, f"Create project failed: {created.text}"
    roadmap = created.json()
    assert roadmap["workspace_id"] == workspace_id
    assert roadmap["start_date"] == "2026-11-01"

    added = await client.post(
        f"{API}/projects/{roadmap['id']}/members", json={"memberId": bob["id"]}, headers=auth(alice)
    )
    assert added.status_code == 200, f"Add project member failed: {added.text}"

    task = await client.post(
        f"{API}/tasks",
        json={
            "project": roadmap["id"],
            "title": "Plan Q1",
            "dueDate": "2026-12-15",
            "assignees": [bob["id"]],
        },
        headers=auth(alice),
    )
    assert task.status_code == 201, f"Create task failed: {task.text}"
    assert task.json()["project_id"] == roadmap["id"]
    assert task.json()["due_date"] == "2026-12-15"

    moved = await client.patch(
        f"{API}/tasks/{task.json()['id']}", json={"dueDate": "2026-12-20"}, headers=auth(bob)
    )
    assert moved.json()["due_date"] == "2026-12-20"

    watched = await client.post(
        f"{API}/tasks/{task.json()['id']}/watchers",
        json={"userId": bob["id"], "action": "add"},
        headers=auth(bob),
    )
    assert bob["id"] in {w["id"] for w in watched.json()["watchers"]}


# ---------------------------------------------------------------------------
# 2. Update
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_concurrent_edits_of_different_fields_both_persist(
    client, session_factory, notifications
):
    """Two members edit different fields, each from a copy of the task read before either write."""
    org, project, (alice, bob, carol) = await team(client, "Alice Owner", "Bob Member", "Carol Member")
    task = await create_task(client, alice, project["id"])
    task_id = uuid.UUID(task["id"])

    async with session_factory() as first, session_factory() as second:
        # Both sessions hold the task as todo/medium before anything is written
        for session in (first, second):
            loaded = await session.get(Task, task_id)
            assert (loaded.status, loaded.priority) == (TaskStatus.todo, TaskPriority.medium)

        by_bob = TaskService(first, ActivityPipeline(first, notifications))
        by_carol = TaskService(second, ActivityPipeline(second, notifications))
        bob_user = await first.get(User, uuid.UUID(bob["id"]))
        carol_user = await second.get(User, uuid.UUID(carol["id"]))

        await by_bob.update_task(task_id, TaskUpdateRequest(status="done"), bob_user)
        await first.commit()

        # Carol's copy still says todo; her write must leave status alone
        assert (await second.get(Task, task_id)).status == TaskStatus.todo
        await by_carol.update_task(task_id, TaskUpdateRequest(priority="urgent"), carol_user)
        await second.commit()

    final = await client.get(f"{API}/tasks/{task['id']}", headers=auth(alice))
    assert final.json()["status"] == "done"
    assert final.json()["priority"] == "urgent"

    log = await activities(client, alice, task["id"])
    by_action = {a["action"]: a for a in log["activities"]}
    assert by_action["status_changed"]["old_value"] == "todo"
    assert by_action["status_changed"]["new_value"] == "done"
    assert by_action["status_changed"]["performed_by"]["id"] == bob["id"]
    assert by_action["priority_changed"]["new_value"] == "urgent"
    assert by_action["priority_changed"]["performed_by"]["id"] == carol["id"]


@pytest.mark.asyncio
async def test_unchanged_fields_record_nothing(client):
    org, project, (alice,) = await team(client, "Alice Owner")
    task = await create_task(client, alice, project["id"], priority="high")

    resp = await client.patch(
        f"{API}/tasks/{task['id']}",
        json={"priority": "high", "title": "Write docs"},
        headers=auth(alice),
    )
    assert resp.status_code == 200
    assert (await activities(client, alice, task["id"]))["total"] == 1


@pytest.mark.asyncio
async def test_required_fields_cannot_be_cleared(client):
    org, project, (alice,) = await team(client, "Alice Owner")
    task = await create_task(client, alice, project["id"], due_date="2026-12-01")

    for body in ({"title": None}, {"title": "   "}, {"status": None}, {"priority": None}):
        resp = await client.patch(f"{API}/tasks/{task['id']}", json=body, headers=auth(alice))
        assert resp.status_code == 400, f"{body}: {resp.text}"
        assert resp.json()["detail"]["code"] == "FIELD_REQUIRED"

    cleared = await client.patch(
        f"{API}/tasks/{task['id']}", json={"due_date": None}, headers=auth(alice)
    )
    assert cleared.status_code == 200
    assert cleared.json()["due_date"] is None

    log = await activities(client, alice, task["id"])
    due = next(a for a in log["activities"] if a["action"] == "due_date_changed")
    assert due["old_value"] == "2026-12-01"
    assert due["new_value"] is None


@pytest.mark.asyncio
async def test_assignee_replacement_records_each_change(client, notifications):
    org, project, (alice, bob, carol) = await team(client, "Alice Owner", "Bob Member", "Carol Member")
    task = await create_task(client, alice, project["id"], assignees=[bob["id"]])
    notifications.clear()

    resp = await client.patch(
        f"{API}/tasks/{task['id']}", json={"assignees": [carol["id"]]}, headers=auth(alice)
    )
    assert resp.status_code == 200, f"Reassign failed: {resp.text}"
    assert [a["id"] for a in resp.json()["assignees"]] == [carol["id"]]

    log = await activities(client, alice, task["id"])
    actions = [(a["action"], a["new_value"] or a["old_value"]) for a in log["activities"]]
    assert ("assigned", carol["id"]) in actions
    assert ("unassigned", bob["id"]) in actions

    # Carol hears about her assignment first, then about Bob leaving the task
    to_carol = notifications.for_user(carol["id"])
    assert [n["type"] for n in to_carol] == ["task_assigned", "task_updated"]
    assert all(n["related_task_id"] == task["id"] for n in to_carol)
    assert notifications.for_user(bob["id"]) == []


# ---------------------------------------------------------------------------
# 3. Watchers
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_watcher_changes_are_idempotent(client):
    org, project, (alice, bob) = await team(client, "Alice Owner", "Bob Member")
    task = await create_task(client, alice, project["id"])

    for _ in range(2):
        resp = await client.post(
            f"{API}/tasks/{task['id']}/watchers",
            json={"user_id": bob["id"], "action": "add"},
            headers=auth(bob),
        )
        assert resp.status_code == 200, f"Watch failed: {resp.text}"
    assert {w["id"] for w in resp.json()["watchers"]} == {alice["id"], bob["id"]}

    for _ in range(2):
        resp = await client.post(
            f"{API}/tasks/{task['id']}/watchers",
            json={"user_id": bob["id"], "action": "remove"},
            headers=auth(bob),
        )
    assert [w["id"] for w in resp.json()["watchers"]] == [alice["id"]]

    log = await activities(client, alice, task["id"])
    assert sorted(a["action"] for a in log["activities"]) == [
        "created",
        "watcher_added",
        "watcher_removed",
    ]


# ---------------------------------------------------------------------------
# 4. Comments and Reactions
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_comment_validation(client):
    org, project, (alice,) = await team(client, "Alice Owner")
    task = await create_task(client, alice, project["id"])

    resp = await client.post(
        f"{API}/tasks/{task['id']}/comments", json={"content": "  "}, headers=auth(alice)
    )
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "CONTENT_REQUIRED"


@pytest.mark.asyncio
async def test_reactions_toggle_and_group(client):
    org, project, (alice, bob) = await team(client, "Alice Owner", "Bob Member")
    task = await create_task(client, alice, project["id"])
    comment = (
        await client.post(
            f"{API}/tasks/{task['id']}/comments", json={"content": "Nice work"}, headers=auth(alice)
        )
    ).json()
    url = f"{API}/tasks/{task['id']}/comments/{comment['id']}/reactions"

    await client.post(url, json={"emoji": "👍"}, headers=auth(alice))
    await client.post(url, json={"emoji": "👍", "action": "add"}, headers=auth(bob))
    await client.post(url, json={"emoji": "👍", "action": "add"}, headers=auth(bob))
    resp = await client.post(url, json={"emoji": "🎉"}, headers=auth(bob))
    assert resp.status_code == 200, f"React failed: {resp.text}"
    assert resp.json()["reactions"] == [
        {"emoji": "👍", "count": 2, "users": [alice["id"], bob["id"]]},
        {"emoji": "🎉", "count": 1, "users": [bob["id"]]},
    ]

    toggled_off = await client.post(url, json={"emoji": "👍"}, headers=auth(alice))
    assert toggled_off.json()["reactions"][0] == {"emoji": "👍", "count": 1, "users": [bob["id"]]}

    log = await activities(client, alice, task["id"])
    actions = [a["action"] for a in log["activities"]]
    assert actions.count("comment_reaction_added") == 3
    assert actions.count("comment_reaction_removed") == 1


@pytest.mark.asyncio
async def test_reaction_on_unknown_comment(client):
    org, project, (alice,) = await team(client, "Alice Owner")
    task = await create_task(client, alice, project["id"])
    other = await create_task(client, alice, project["id"], "Other")
    comment = (
        await client.post(
            f"{API}/tasks/{other['id']}/comments", json={"content": "Elsewhere"}, headers=auth(alice)
        )
    ).json()

    resp = await client.post(
        f"{API}/tasks/{task['id']}/comments/{comment['id']}/reactions",
        json={"emoji": "👍"},
        headers=auth(alice),
    )
    assert resp.status_code == 404
    assert resp.json()["detail"]["code"] == "COMMENT_NOT_FOUND"


# ---------------------------------------------------------------------------
# 5. Activity Log and Listings
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_activity_log_is_newest_first_and_paginated(client):
    org, project, (alice,) = await team(client, "Alice Owner")
    task = await create_task(client, alice, project["id"])
    for status in ("in_progress", "done", "todo"):
        await client.patch(f"{API}/tasks/{task['id']}", json={"status": status}, headers=auth(alice))

    page1 = await activities(client, alice, task["id"], page=1, limit=3)
    assert page1["total"] == 4
    assert page1["total_pages"] == 2
    assert [a["new_value"] for a in page1["activities"]] == ["todo", "done", "in_progress"]

    page2 = await activities(client, alice, task["id"], page=2, limit=3)
    assert [a["action"] for a in page2["activities"]] == ["created"]


@pytest.mark.asyncio
async def test_assigned_tasks_sorted_by_due_date(client):
    org, project, (alice, bob) = await team(client, "Alice Owner", "Bob Member")
    undated = await create_task(client, alice, project["id"], "Someday", assignees=[bob["id"]])
    later = await create_task(
        client, alice, project["id"], "Later", due_date="2026-12-20", assignees=[bob["id"]]
    )
    sooner = await create_task(
        client, alice, project["id"], "Sooner", due_date="2026-11-01", assignees=[bob["id"]]
    )
    await create_task(client, alice, project["id"], "Not mine")

    resp = await client.get(f"{API}/tasks/assigned", headers=auth(bob))
    assert resp.status_code == 200
    assert [t["id"] for t in resp.json()["tasks"]] == [sooner["id"], later["id"], undated["id"]]


@pytest.mark.asyncio
async def test_assigned_tasks_due_same_day_most_urgent_first(client):
    org, project, (alice, bob) = await team(client, "Alice Owner", "Bob Member")
    due = {"due_date": "2026-11-01", "assignees": [bob["id"]]}
    low = await create_task(client, alice, project["id"], "Tidy up", priority="low", **due)
    urgent = await create_task(client, alice, project["id"], "Outage", priority="urgent", **due)
    high = await create_task(client, alice, project["id"], "Release", priority="high", **due)

    resp = await client.get(f"{API}/tasks/assigned", headers=auth(bob))
    assert [t["id"] for t in resp.json()["tasks"]] == [urgent["id"], high["id"], low["id"]]


@pytest.mark.asyncio
async def test_workspace_task_listing(client):
    org, project, (alice, bob) = await team(client, "Alice Owner", "Bob Member")
    await create_task(client, alice, project["id"], "One")
    await create_task(client, bob, project["id"], "Two")

    resp = await client.get(f"{API}/tasks/workspace/{project['workspace_id']}", headers=auth(bob))
    assert resp.status_code == 200
    assert resp.json()["total"] == 2
    assert {t["title"] for t in resp.json()["tasks"]} == {"One", "Two"}
