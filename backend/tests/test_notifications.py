"""
Activity and notification pipeline tests.

Covers who gets notified for task events, @mention resolution, the
worker's storage step and the notification endpoints.
"""

import pytest

from helpers import API, auth, create_task, register, team
from trackspace.core.dependencies import get_notification_enqueuer
from trackspace.main import app
from trackspace.workers.notification_tasks import store_notification


async def comment(client, user, task_id, content) -> dict:
    resp = await client.post(
        f"{API}/tasks/{task_id}/comments", json={"content": content}, headers=auth(user)
    )
    assert resp.status_code == 201, f"Comment failed: {resp.text}"
    return resp.json()


async def deliver(session_factory, payloads) -> None:
    """Run queued payloads through the worker's storage step."""
    async with session_factory() as session:
        for payload in payloads:
            await store_notification(session, payload)
        await session.commit()


# ---------------------------------------------------------------------------
# 1. Mentions
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_mention_requires_full_display_name(client, notifications):
    org, project, (alice, david, erin) = await team(client, "Alice Owner", "David Lee", "Erin Cole")
    task = await create_task(client, alice, project["id"])
    await client.post(
        f"{API}/tasks/{task['id']}/watchers",
        json={"user_id": david["id"], "action": "add"},
        headers=auth(alice),
    )
    notifications.clear()

    # "@David" is not David Lee's name; he hears about it only as a watcher
    await comment(client, erin, task["id"], "@David please review")
    assert [n["type"] for n in notifications.for_user(david["id"])] == ["comment_added"]
    notifications.clear()

    posted = await comment(client, erin, task["id"], "@David Lee please review")
    [to_david] = notifications.for_user(david["id"])
    assert to_david["type"] == "mentioned"
    assert to_david["related_comment_id"] == posted["id"]
    assert to_david["sender_name"] == "Erin Cole"


@pytest.mark.asyncio
async def test_mention_reaches_non_watcher_member(client, notifications):
    org, project, (alice, bob) = await team(client, "Alice Owner", "Bob Member")
    task = await create_task(client, alice, project["id"])
    notifications.clear()

    await comment(client, alice, task["id"], "cc @bob member, thoughts?")
    assert [n["type"] for n in notifications.for_user(bob["id"])] == ["mentioned"]
    # The author is never notified about their own comment
    assert notifications.for_user(alice["id"]) == []


@pytest.mark.asyncio
async def test_mentioning_outsider_does_nothing(client, notifications):
    org, project, (alice,) = await team(client, "Alice Owner")
    outsider = await register(client, "Olivia Outside")
    task = await create_task(client, alice, project["id"])
    notifications.clear()

    await comment(client, alice, task["id"], "@Olivia Outside can you look?")
    assert notifications.for_user(outsider["id"]) == []


@pytest.mark.asyncio
async def test_renamed_member_is_mentioned_by_new_name(client, notifications):
    org, project, (alice, bob) = await team(client, "Alice Owner", "Bob Member")
    task = await create_task(client, alice, project["id"])

    renamed = await client.patch(
        f"{API}/auth/profile", json={"display_name": "  Robert Stone "}, headers=auth(bob)
    )
    assert renamed.status_code == 200, f"Profile update failed: {renamed.text}"
    assert renamed.json()["display_name"] == "Robert Stone"
    notifications.clear()

    await comment(client, alice, task["id"], "@Bob Member still there?")
    assert notifications.for_user(bob["id"]) == []

    await comment(client, alice, task["id"], "@Robert Stone please take a look")
    assert [n["type"] for n in notifications.for_user(bob["id"])] == ["mentioned"]

    blank = await client.patch(f"{API}/auth/profile", json={"name": " "}, headers=auth(bob))
    assert blank.status_code == 400
    assert blank.json()["detail"]["code"] == "NAME_REQUIRED"


# ---------------------------------------------------------------------------
# 2. Recipients
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_watchers_and_assignees_hear_about_updates(client, notifications):
    org, project, (alice, bob, carol, dave) = await team(
        client, "Alice Owner", "Bob Member", "Carol Member", "Dave Member"
    )
    task = await create_task(client, alice, project["id"], assignees=[bob["id"]])
    await client.post(
        f"{API}/tasks/{task['id']}/watchers",
        json={"user_id": carol["id"], "action": "add"},
        headers=auth(carol),
    )
    notifications.clear()

    await client.patch(f"{API}/tasks/{task['id']}", json={"status": "done"}, headers=auth(bob))

    recipients = {n["recipient_id"] for n in notifications.payloads}
    assert recipients == {alice["id"], carol["id"]}
    assert {n["type"] for n in notifications.payloads} == {"task_updated"}
    assert notifications.for_user(dave["id"]) == []


@pytest.mark.asyncio
async def test_assignee_on_create_gets_single_assignment_notice(client, notifications):
    org, project, (alice, bob) = await team(client, "Alice Owner", "Bob Member")
    notifications.clear()

    await create_task(client, alice, project["id"], assignees=[bob["id"]])
    [to_bob] = notifications.for_user(bob["id"])
    assert to_bob["type"] == "task_assigned"
    assert to_bob["title"] == "New Task Assigned"


@pytest.mark.asyncio
async def test_enqueue_failure_does_not_fail_mutation(client):
    org, project, (alice, bob) = await team(client, "Alice Owner", "Bob Member")
    task = await create_task(client, alice, project["id"], assignees=[bob["id"]])

    def broken_enqueuer(payload):
        raise ConnectionError("broker unavailable")

    app.dependency_overrides[get_notification_enqueuer] = lambda: broken_enqueuer

    resp = await client.patch(f"{API}/tasks/{task['id']}", json={"status": "done"}, headers=auth(alice))
    assert resp.status_code == 200, f"Update failed: {resp.text}"

    log = await client.get(f"{API}/tasks/{task['id']}/activities", headers=auth(alice))
    assert log.json()["activities"][0]["action"] == "status_changed"


# ---------------------------------------------------------------------------
# 3. Storage and Endpoints
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_delivered_notifications_can_be_read(client, notifications, session_factory):
    org, project, (alice, bob) = await team(client, "Alice Owner", "Bob Member")
    notifications.clear()
    task = await create_task(client, alice, project["id"], assignees=[bob["id"]])
    await comment(client, alice, task["id"], "Kicking this off")
    await deliver(session_factory, notifications.payloads)

    listing = await client.get(f"{API}/notifications", headers=auth(bob))
    assert listing.status_code == 200, f"List failed: {listing.text}"
    body = listing.json()
    assert body["total"] == 2
    assert body["unread_count"] == 2
    assert {n["type"] for n in body["notifications"]} == {"task_assigned", "comment_added"}

    first_id = body["notifications"][0]["id"]
    read = await client.patch(f"{API}/notifications/{first_id}/read", headers=auth(bob))
    assert read.status_code == 200
    assert read.json()["is_read"] is True

    count = await client.get(f"{API}/notifications/unread-count", headers=auth(bob))
    assert count.json() == {"count": 1}

    unread = await client.get(f"{API}/notifications", params={"unread": True}, headers=auth(bob))
    assert unread.json()["total"] == 1

    marked = await client.patch(f"{API}/notifications/mark-all-read", headers=auth(bob))
    assert marked.json() == {"updated": 1}
    count = await client.get(f"{API}/notifications/unread-count", headers=auth(bob))
    assert count.json() == {"count": 0}


@pytest.mark.asyncio
async def test_cannot_read_someone_elses_notification(client, notifications, session_factory):
    org, project, (alice, bob) = await team(client, "Alice Owner", "Bob Member")
    notifications.clear()
    await create_task(client, alice, project["id"], assignees=[bob["id"]])
    await deliver(session_factory, notifications.payloads)

    [mine] = (await client.get(f"{API}/notifications", headers=auth(bob))).json()["notifications"]
    resp = await client.patch(f"{API}/notifications/{mine['id']}/read", headers=auth(alice))
    assert resp.status_code == 404
    assert resp.json()["detail"]["code"] == "NOTIFICATION_NOT_FOUND"


@pytest.mark.asyncio
async def test_project_member_added_notification(client, notifications):
    org, project, (alice, bob) = await team(client, "Alice Owner", "Bob Member")

    [added] = notifications.for_user(bob["id"])[-1:]
    assert added["type"] == "project_member_added"
    assert added["related_project_id"] == project["id"]
    assert added["related_organization_id"] == org["id"]
