"""
Shared request helpers for the API tests.
"""

import uuid

from httpx import AsyncClient

API = "/api/v1"
PASSWORD = "password123"


def unique_email(prefix: str = "user") -> str:
    return f"{prefix}_{uuid.uuid4().hex[:8]}@example.com"


def auth(user: dict) -> dict:
    return {"Authorization": f"Bearer {user['token']}"}


async def register(client: AsyncClient, display_name: str, email: str | None = None) -> dict:
    """Register a user and return {id, email, display_name, token, refresh_token}."""
    email = email or unique_email(display_name.split()[0].lower())
    resp = await client.post(
        f"{API}/auth/register",
        json={"display_name": display_name, "email": email, "password": PASSWORD},
    )
    assert resp.status_code == 201, f"Register failed: {resp.text}"
    tokens = resp.json()

    me = await client.get(
        f"{API}/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"}
    )
    assert me.status_code == 200, f"Get me failed: {me.text}"
    return {
        "id": me.json()["id"],
        "email": email,
        "display_name": display_name,
        "token": tokens["access_token"],
        "refresh_token": tokens["refresh_token"],
    }


async def create_org(client: AsyncClient, owner: dict, name: str = "Acme Corp") -> dict:
    resp = await client.post(
        f"{API}/contexts/organizations", json={"name": name}, headers=auth(owner)
    )
    assert resp.status_code == 201, f"Create org failed: {resp.text}"
    return resp.json()


async def add_org_member(
    client: AsyncClient, actor: dict, org_id: str, user: dict, role: str = "member"
) -> dict:
    resp = await client.post(
        f"{API}/contexts/organizations/{org_id}/members",
        json={"email": user["email"], "role": role},
        headers=auth(actor),
    )
    assert resp.status_code == 201, f"Add org member failed: {resp.text}"
    return resp.json()


async def create_workspace(
    client: AsyncClient, owner: dict, org_id: str, name: str = "Engineering", members=()
) -> dict:
    resp = await client.post(
        f"{API}/workspaces",
        json={
            "name": name,
            "context_type": "organization",
            "context_id": org_id,
            "members": [m["id"] for m in members],
        },
        headers=auth(owner),
    )
    assert resp.status_code == 201, f"Create workspace failed: {resp.text}"
    return resp.json()


async def create_project(
    client: AsyncClient, owner: dict, workspace_id: str, name: str = "Launch", members=()
) -> dict:
    resp = await client.post(
        f"{API}/projects",
        json={
            "workspace_id": workspace_id,
            "name": name,
            "members": [m["id"] for m in members],
        },
        headers=auth(owner),
    )
    assert resp.status_code == 201, f"Create project failed: {resp.text}"
    return resp.json()


async def create_task(
    client: AsyncClient, creator: dict, project_id: str, title: str = "Write docs", **fields
) -> dict:
    resp = await client.post(
        f"{API}/tasks",
        json={"project_id": project_id, "title": title, **fields},
        headers=auth(creator),
    )
    assert resp.status_code == 201, f"Create task failed: {resp.text}"
    return resp.json()


async def team(client: AsyncClient, *names: str) -> tuple[dict, dict, list[dict]]:
    """
    Register an owner plus the named members, put everyone in one org,
    one workspace and one project. Returns (org, project, users) with the
    owner first.
    """
    users = [await register(client, name) for name in names]
    owner, others = users[0], users[1:]
    org = await create_org(client, owner)
    for user in others:
        await add_org_member(client, owner, org["id"], user)
    workspace = await create_workspace(client, owner, org["id"], members=others)
    project = await create_project(client, owner, workspace["id"], members=others)
    return org, project, users
