"""
HTTP tests for the company and membership routes
"""
import asyncio
import time

import httpx

from company_roster.main import app
from company_roster.repositories.company_store import CompanyStore


def as_user(user_id: str) -> dict:
    """Request headers identifying the caller."""
    return {"X-User-Id": user_id}


def create_company(client, user_id="u1", name="Acme", **extra):
    response = client.post("/companies", json={"name": name, **extra}, headers=as_user(user_id))
    assert response.status_code == 201, response.text
    return response.json()


def test_health_needs_no_caller(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_missing_caller_is_rejected(client):
    response = client.get("/companies")
    assert response.status_code == 401
    assert response.json()["type"] == "authentication_error"


def test_blank_caller_is_rejected(client):
    response = client.get("/companies", headers={"X-User-Id": "   "})
    assert response.status_code == 401


def test_oversized_caller_is_rejected(client):
    response = client.get("/companies", headers=as_user("x" * 129))
    assert response.status_code == 400


def test_create_company(client):
    response = client.post("/companies", json={"name": "Acme"}, headers=as_user("u1"))

    assert response.status_code == 201
    body = response.json()
    assert body["name"] == "Acme"
    assert body["plan"] == "free"
    assert response.headers["location"] == f"/companies/{body['id']}"

    me = client.get(f"/companies/{body['id']}/me", headers=as_user("u1"))
    assert me.json() == {"user_id": "u1", "role": "owner", "company_id": body["id"]}


def test_create_company_validates_name(client):
    assert client.post("/companies", json={"name": ""}, headers=as_user("u1")).status_code == 422
    assert client.post("/companies", json={"name": "x" * 161}, headers=as_user("u1")).status_code == 422


def test_duplicate_company_name(client):
    create_company(client)
    response = client.post("/companies", json={"name": "Acme"}, headers=as_user("u2"))

    assert response.status_code == 409
    assert client.get("/companies", headers=as_user("u2")).json() == []


def test_list_my_companies(client):
    acme = create_company(client, "u1", "Acme")
    create_company(client, "u2", "Globex")

    names = [c["name"] for c in client.get("/companies", headers=as_user("u1")).json()]
    assert names == ["Acme"]

    client.post(f"/companies/{acme['id']}/members", json={"user_id": "u2", "role": "member"}, headers=as_user("u1"))
    names = {c["name"] for c in client.get("/companies", headers=as_user("u2")).json()}
    assert names == {"Acme", "Globex"}


def test_non_member_cannot_tell_whether_company_exists(client):
    acme = create_company(client)

    existing = client.get(f"/companies/{acme['id']}", headers=as_user("stranger"))
    missing = client.get("/companies/999999", headers=as_user("stranger"))

    assert existing.status_code == missing.status_code == 403
    assert existing.json() == missing.json()

    for path in ("members", "me"):
        existing = client.get(f"/companies/{acme['id']}/{path}", headers=as_user("stranger"))
        missing = client.get(f"/companies/999999/{path}", headers=as_user("stranger"))
        assert existing.status_code == missing.status_code == 403
        assert existing.json() == missing.json()


def test_add_member(client):
    acme = create_company(client)

    response = client.post(
        f"/companies/{acme['id']}/members",
        json={"user_id": "u2", "role": "manager"},
        headers=as_user("u1"),
    )

    assert response.status_code == 201
    assert response.json()["role"] == "manager"
    assert response.headers["location"] == f"/companies/{acme['id']}/members/u2"

    members = client.get(f"/companies/{acme['id']}/members", headers=as_user("u2")).json()
    assert {m["user_id"]: m["role"] for m in members} == {"u1": "owner", "u2": "manager"}


def test_add_member_rejects_unknown_role(client):
    acme = create_company(client)
    response = client.post(
        f"/companies/{acme['id']}/members",
        json={"user_id": "u2", "role": "superuser"},
        headers=as_user("u1"),
    )
    assert response.status_code == 422


def test_add_existing_member_conflicts(client):
    acme = create_company(client)
    url = f"/companies/{acme['id']}/members"
    client.post(url, json={"user_id": "u2", "role": "member"}, headers=as_user("u1"))

    response = client.post(url, json={"user_id": "u2", "role": "admin"}, headers=as_user("u1"))

    assert response.status_code == 409
    members = client.get(url, headers=as_user("u1")).json()
    assert len(members) == 2
    assert {m["user_id"]: m["role"] for m in members}["u2"] == "member"


def test_update_missing_member(client):
    acme = create_company(client)
    response = client.patch(
        f"/companies/{acme['id']}/members/ghost",
        json={"role": "admin"},
        headers=as_user("u1"),
    )
    assert response.status_code == 404


def test_remove_last_owner_is_rejected(client):
    acme = create_company(client)
    response = client.delete(f"/companies/{acme['id']}/members/u1", headers=as_user("u1"))

    assert response.status_code == 400
    assert response.json()["type"] == "invariant_violation"
    assert client.get(f"/companies/{acme['id']}/me", headers=as_user("u1")).json()["role"] == "owner"


def test_remove_member(client):
    acme = create_company(client)
    url = f"/companies/{acme['id']}/members"
    client.post(url, json={"user_id": "u2", "role": "member"}, headers=as_user("u1"))

    response = client.delete(f"{url}/u2", headers=as_user("u1"))

    assert response.status_code == 204
    assert client.get(f"/companies/{acme['id']}/me", headers=as_user("u2")).status_code == 403


def test_ownership_handover_scenario(client):
    acme = create_company(client, "u1", "Acme")
    members_url = f"/companies/{acme['id']}/members"

    response = client.post(members_url, json={"user_id": "u2", "role": "manager"}, headers=as_user("u1"))
    assert response.status_code == 201

    response = client.post(members_url, json={"user_id": "u3", "role": "member"}, headers=as_user("u2"))
    assert response.status_code == 403

    response = client.patch(f"{members_url}/u1", json={"role": "admin"}, headers=as_user("u1"))
    assert response.status_code == 400

    response = client.patch(f"{members_url}/u2", json={"role": "owner"}, headers=as_user("u1"))
    assert response.status_code == 204

    response = client.patch(f"{members_url}/u1", json={"role": "admin"}, headers=as_user("u1"))
    assert response.status_code == 204

    roles = {m["user_id"]: m["role"] for m in client.get(members_url, headers=as_user("u1")).json()}
    assert roles == {"u1": "admin", "u2": "owner"}


def test_independent_requests_run_concurrently(client, monkeypatch):
    company_ids = [create_company(client, f"owner{i}", f"Company {i}")["id"] for i in range(4)]

    original = CompanyStore.find_membership

    def slow_find_membership(self, company_id, user_id):
        time.sleep(0.5)
        return original(self, company_id, user_id)

    monkeypatch.setattr(CompanyStore, "find_membership", slow_find_membership)

    async def fetch_all():
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
            return await asyncio.gather(*[
                http.get(f"/companies/{company_id}", headers=as_user(f"owner{i}"))
                for i, company_id in enumerate(company_ids)
            ])

    started = time.perf_counter()
    responses = asyncio.run(fetch_all())
    elapsed = time.perf_counter() - started

    assert [r.status_code for r in responses] == [200] * 4
    # Serialized handling would take at least 2s
    assert elapsed < 1.5
