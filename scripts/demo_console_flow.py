"""Demo: log in as root, create an operator, and inspect its permissions.

Runs entirely in memory against FastAPI's TestClient.

Run with:
    python scripts/demo_console_flow.py
"""

from __future__ import annotations

import asyncio

from fastapi.testclient import TestClient

from console.api import dependencies
from console.main import app
from console.models.role import Role
from console.models.user import User
from console.services import passwords

ROOT_USERNAME = "root"
ROOT_PASSWORD = "root-pass1"


def _seed() -> Role:
    if asyncio.run(dependencies.user_repo.get_root()) is None:
        asyncio.run(
            dependencies.user_repo.add(
                User.new(
                    username=ROOT_USERNAME,
                    password_hash=passwords.hash_password(ROOT_PASSWORD),
                    is_root=True,
                )
            )
        )
    role = Role.new(name="operator", description="Can browse users")
    asyncio.run(dependencies.role_repo.add(role, ["users:list", "users:detail"]))
    return role


def main() -> None:
    client = TestClient(app)
    role = _seed()

    resp = client.post(
        "/auth/login", json={"username": ROOT_USERNAME, "password": ROOT_PASSWORD}
    )
    resp.raise_for_status()
    root_headers = {"Authorization": f"Bearer {resp.json()['access_token']}"}
    print("1. root logged in")

    resp = client.post(
        "/console/users",
        json={"username": "operator", "password": "op-pass1", "role_id": str(role.id)},
        headers=root_headers,
    )
    resp.raise_for_status()
    print(f"2. created operator id={resp.json()['id']}")

    resp = client.post(
        "/auth/login", json={"username": "operator", "password": "op-pass1"}
    )
    op_headers = {"Authorization": f"Bearer {resp.json()['access_token']}"}
    info = client.get("/console/users/info", headers=op_headers).json()
    print(f"3. operator permissions: {info['permissions']}")

    resp = client.delete("/console/users/" + info["user"]["id"], headers=op_headers)
    print(f"4. operator delete attempt → {resp.status_code} {resp.json()['detail']}")


if __name__ == "__main__":
    main()
