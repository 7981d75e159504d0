"""
Organization membership tests.

Covers creation, adding members, role changes, removal, leaving and
ownership transfer, plus what happens to a departing member's workspaces
and projects.
"""

import pytest

from helpers import (
    API,
    add_org_member,
    auth,
    create_org,
    create_project,
    create_workspace,
    register,
)


async def org_members(client, user, org_id) -> dict[str, str]:
    resp = await client.get(f"{API}/contexts/organizations/{org_id}/members", headers=auth(user))
    assert resp.status_code == 200, f"List org members failed: {resp.text}"
    return {m["user_id"]: m["role"] for m in resp.json()}


# ---------------------------------------------------------------------------
# 1. Creation
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_organization(client):
    alice = await register(client, "Alice Owner")

    org = await create_org(client, alice, "Acme Corp")
    assert org["slug"] == "acme-corp"
    assert org["role"] == "owner"
    assert org["member_count"] == 1

    workspaces = await client.get(
        f"{API}/workspaces",
        params={"contextType": "organization", "contextId": org["id"]},
        headers=auth(alice),
    )
    [general] = workspaces.json()
    assert general["name"] == "General"
    assert general["color"] == "#10b981"
    assert general["owner_id"] == alice["id"]


@pytest.mark.asyncio
async def test_slug_collision_gets_suffix(client):
    alice = await register(client, "Alice Owner")
    bob = await register(client, "Bob Other")

    first = await create_org(client, alice, "Acme Corp")
    second = await create_org(client, bob, "Acme  Corp!")
    third = await create_org(client, bob, "acme corp")
    assert first["slug"] == "acme-corp"
    assert second["slug"] == "acme-corp-1"
    assert third["slug"] == "acme-corp-2"


@pytest.mark.asyncio
async def test_empty_names_rejected(client):
    alice = await register(client, "Alice Owner")
    org = await create_org(client, alice)
    workspace = await create_workspace(client, alice, org["id"])

    for path, body in (
        ("contexts/organizations", {"name": ""}),
        ("workspaces", {"name": "", "contextType": "organization", "contextId": org["id"]}),
        ("projects", {"name": "", "workspace": workspace["id"]}),
    ):
        resp = await client.post(f"{API}/{path}", json=body, headers=auth(alice))
        assert resp.status_code == 400, f"{path}: {resp.text}"
        assert resp.json()["detail"]["code"] == "NAME_REQUIRED"


@pytest.mark.asyncio
async def test_list_organizations_shows_role_and_count(client):
    alice = await register(client, "Alice Owner")
    bob = await register(client, "Bob Member")
    org = await create_org(client, alice)
    await add_org_member(client, alice, org["id"], bob)

    resp = await client.get(f"{API}/contexts/organizations", headers=auth(bob))
    [listed] = resp.json()
    assert listed["id"] == org["id"]
    assert listed["role"] == "member"
    assert listed["member_count"] == 2


# ---------------------------------------------------------------------------
# 2. Adding Members
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_add_member_by_email(client, notifications):
    alice = await register(client, "Alice Owner")
    bob = await register(client, "Bob Member")
    org = await create_org(client, alice)

    member = await add_org_member(client, alice, org["id"], bob, role="admin")
    assert member["user_id"] == bob["id"]
    assert member["role"] == "admin"

    [sent] = notifications.for_user(bob["id"])
    assert sent["type"] == "org_member_added"
    assert sent["related_organization_id"] == org["id"]
    assert sent["sender_id"] == alice["id"]


@pytest.mark.asyncio
async def test_add_member_errors(client):
    alice = await register(client, "Alice Owner")
    bob = await register(client, "Bob Member")
    org = await create_org(client, alice)
    await add_org_member(client, alice, org["id"], bob)

    duplicate = await client.post(
        f"{API}/contexts/organizations/{org['id']}/members",
        json={"email": bob["email"]},
        headers=auth(alice),
    )
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"]["code"] == "ALREADY_A_MEMBER"

    unknown = await client.post(
        f"{API}/contexts/organizations/{org['id']}/members",
        json={"email": "nobody@example.com"},
        headers=auth(alice),
    )
    assert unknown.status_code == 404
    assert unknown.json()["detail"]["code"] == "USER_NOT_FOUND"

    as_owner = await client.post(
        f"{API}/contexts/organizations/{org['id']}/members",
        json={"email": bob["email"], "role": "owner"},
        headers=auth(alice),
    )
    assert as_owner.status_code == 422


@pytest.mark.asyncio
async def test_plain_member_cannot_add_members(client):
    alice = await register(client, "Alice Owner")
    bob = await register(client, "Bob Member")
    carol = await register(client, "Carol New")
    org = await create_org(client, alice)
    await add_org_member(client, alice, org["id"], bob)

    resp = await client.post(
        f"{API}/contexts/organizations/{org['id']}/members",
        json={"email": carol["email"]},
        headers=auth(bob),
    )
    assert resp.status_code == 403
    assert resp.json()["detail"]["code"] == "INSUFFICIENT_ROLE"


@pytest.mark.asyncio
async def test_non_member_cannot_read_members(client):
    alice = await register(client, "Alice Owner")
    mallory = await register(client, "Mallory Outsider")
    org = await create_org(client, alice)

    resp = await client.get(
        f"{API}/contexts/organizations/{org['id']}/members", headers=auth(mallory)
    )
    assert resp.status_code == 403


# ---------------------------------------------------------------------------
# 3. Roles
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_owner_changes_roles(client, notifications):
    alice = await register(client, "Alice Owner")
    bob = await register(client, "Bob Member")
    org = await create_org(client, alice)
    await add_org_member(client, alice, org["id"], bob)
    notifications.clear()

    resp = await client.patch(
        f"{API}/contexts/organizations/{org['id']}/members/{bob['id']}",
        json={"role": "admin"},
        headers=auth(alice),
    )
    assert resp.status_code == 200, f"Role change failed: {resp.text}"
    assert resp.json()["role"] == "admin"
    assert [n["type"] for n in notifications.for_user(bob["id"])] == ["org_role_updated"]


@pytest.mark.asyncio
async def test_admin_cannot_change_roles(client):
    alice = await register(client, "Alice Owner")
    bob = await register(client, "Bob Admin")
    carol = await register(client, "Carol Member")
    org = await create_org(client, alice)
    await add_org_member(client, alice, org["id"], bob, role="admin")
    await add_org_member(client, alice, org["id"], carol)

    resp = await client.patch(
        f"{API}/contexts/organizations/{org['id']}/members/{carol['id']}",
        json={"role": "admin"},
        headers=auth(bob),
    )
    assert resp.status_code == 403
    assert resp.json()["detail"]["code"] == "INSUFFICIENT_ROLE"


@pytest.mark.asyncio
async def test_owner_role_cannot_be_changed(client):
    alice = await register(client, "Alice Owner")
    org = await create_org(client, alice)

    resp = await client.patch(
        f"{API}/contexts/organizations/{org['id']}/members/{alice['id']}",
        json={"role": "member"},
        headers=auth(alice),
    )
    assert resp.status_code == 403
    assert resp.json()["detail"]["code"] == "CANNOT_CHANGE_OWNER"


# ---------------------------------------------------------------------------
# 4. Removal and Leaving
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_admin_removes_member(client):
    alice = await register(client, "Alice Owner")
    bob = await register(client, "Bob Admin")
    carol = await register(client, "Carol Member")
    org = await create_org(client, alice)
    await add_org_member(client, alice, org["id"], bob, role="admin")
    await add_org_member(client, alice, org["id"], carol)

    resp = await client.delete(
        f"{API}/contexts/organizations/{org['id']}/members/{carol['id']}", headers=auth(bob)
    )
    assert resp.status_code == 204, f"Remove failed: {resp.text}"
    assert carol["id"] not in await org_members(client, alice, org["id"])


@pytest.mark.asyncio
async def test_owner_cannot_be_removed(client):
    alice = await register(client, "Alice Owner")
    bob = await register(client, "Bob Admin")
    org = await create_org(client, alice)
    await add_org_member(client, alice, org["id"], bob, role="admin")

    resp = await client.delete(
        f"{API}/contexts/organizations/{org['id']}/members/{alice['id']}", headers=auth(bob)
    )
    assert resp.status_code == 403
    assert resp.json()["detail"]["code"] == "CANNOT_REMOVE_OWNER"


@pytest.mark.asyncio
async def test_member_leaves_but_owner_cannot(client):
    alice = await register(client, "Alice Owner")
    bob = await register(client, "Bob Member")
    org = await create_org(client, alice)
    await add_org_member(client, alice, org["id"], bob)

    owner_leave = await client.delete(
        f"{API}/contexts/organizations/{org['id']}/leave", headers=auth(alice)
    )
    assert owner_leave.status_code == 400
    assert owner_leave.json()["detail"]["code"] == "OWNER_CANNOT_LEAVE"

    member_leave = await client.delete(
        f"{API}/contexts/organizations/{org['id']}/leave", headers=auth(bob)
    )
    assert member_leave.status_code == 204
    assert await org_members(client, alice, org["id"]) == {alice["id"]: "owner"}


@pytest.mark.asyncio
async def test_removed_member_loses_workspace_and_project_access(client):
    alice = await register(client, "Alice Owner")
    bob = await register(client, "Bob Member")
    org = await create_org(client, alice)
    await add_org_member(client, alice, org["id"], bob)
    workspace = await create_workspace(client, alice, org["id"], members=[bob])
    project = await create_project(client, alice, workspace["id"], members=[bob])

    await client.delete(
        f"{API}/contexts/organizations/{org['id']}/members/{bob['id']}", headers=auth(alice)
    )

    ws = await client.get(f"{API}/workspaces/{workspace['id']}", headers=auth(alice))
    assert [m["user"]["id"] for m in ws.json()["members"]] == [alice["id"]]
    proj = await client.get(f"{API}/projects/{project['id']}", headers=auth(alice))
    assert [m["user"]["id"] for m in proj.json()["members"]] == [alice["id"]]

    denied = await client.get(f"{API}/projects/{project['id']}", headers=auth(bob))
    assert denied.status_code == 403


@pytest.mark.asyncio
async def test_departing_members_workspaces_pass_to_owner(client):
    alice = await register(client, "Alice Owner")
    bob = await register(client, "Bob Member")
    org = await create_org(client, alice)
    await add_org_member(client, alice, org["id"], bob)
    workspace = await create_workspace(client, bob, org["id"], "Bob's Team")
    project = await create_project(client, bob, workspace["id"], "Bob's Project")

    resp = await client.delete(f"{API}/contexts/organizations/{org['id']}/leave", headers=auth(bob))
    assert resp.status_code == 204

    ws = await client.get(f"{API}/workspaces/{workspace['id']}", headers=auth(alice))
    assert ws.status_code == 200, f"Get workspace failed: {ws.text}"
    assert ws.json()["owner_id"] == alice["id"]
    assert [m["user"]["id"] for m in ws.json()["members"]] == [alice["id"]]

    proj = await client.get(f"{API}/projects/{project['id']}", headers=auth(alice))
    assert proj.json()["owner_id"] == alice["id"]


# ---------------------------------------------------------------------------
# 5. Ownership Transfer
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_transfer_ownership(client):
    alice = await register(client, "Alice Owner")
    bob = await register(client, "Bob Member")
    org = await create_org(client, alice)
    await add_org_member(client, alice, org["id"], bob)

    resp = await client.post(
        f"{API}/auth/transfer-ownership",
        json={"organization_id": org["id"], "new_owner_id": bob["id"]},
        headers=auth(alice),
    )
    assert resp.status_code == 200, f"Transfer failed: {resp.text}"
    assert resp.json()["previous_owner_id"] == alice["id"]

    assert await org_members(client, alice, org["id"]) == {
        alice["id"]: "member",
        bob["id"]: "owner",
    }

    # The former owner no longer has owner rights
    again = await client.post(
        f"{API}/auth/transfer-ownership",
        json={"organization_id": org["id"], "new_owner_id": alice["id"]},
        headers=auth(alice),
    )
    assert again.status_code == 403


@pytest.mark.asyncio
async def test_transfer_ownership_errors(client):
    alice = await register(client, "Alice Owner")
    bob = await register(client, "Bob Member")
    mallory = await register(client, "Mallory Outsider")
    org = await create_org(client, alice)
    await add_org_member(client, alice, org["id"], bob)

    to_outsider = await client.post(
        f"{API}/auth/transfer-ownership",
        json={"organization_id": org["id"], "new_owner_id": mallory["id"]},
        headers=auth(alice),
    )
    assert to_outsider.status_code == 409
    assert to_outsider.json()["detail"]["code"] == "NOT_A_MEMBER"

    to_self = await client.post(
        f"{API}/auth/transfer-ownership",
        json={"organization_id": org["id"], "new_owner_id": alice["id"]},
        headers=auth(alice),
    )
    assert to_self.status_code == 400
    assert to_self.json()["detail"]["code"] == "ALREADY_OWNER"

    by_member = await client.post(
        f"{API}/auth/transfer-ownership",
        json={"organization_id": org["id"], "new_owner_id": bob["id"]},
        headers=auth(bob),
    )
    assert by_member.status_code == 403


@pytest.mark.asyncio
async def test_transfer_ownership_with_camel_case_body(client):
    alice = await register(client, "Alice Owner")
    bob = await register(client, "Bob Member")
    org = await create_org(client, alice)
    await add_org_member(client, alice, org["id"], bob)

    resp = await client.post(
        f"{API}/auth/transfer-ownership",
        json={"organizationId": org["id"], "newOwnerId": bob["id"]},
        headers=auth(alice),
    )
    assert resp.status_code == 200, f"Transfer failed: {resp.text}"
    assert resp.json()["new_owner_id"] == bob["id"]
    assert (await org_members(client, bob, org["id"]))[alice["id"]] == "member"


@pytest.mark.asyncio
async def test_owned_organizations_lists_candidates(client):
    alice = await register(client, "Alice Owner")
    bob = await register(client, "Bob Member")
    org = await create_org(client, alice)
    await add_org_member(client, alice, org["id"], bob)

    resp = await client.get(f"{API}/auth/owned-organizations", headers=auth(alice))
    [owned] = resp.json()
    assert owned["id"] == org["id"]
    assert [m["id"] for m in owned["members"]] == [bob["id"]]
