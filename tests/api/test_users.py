"""Profile endpoint tests."""

import pytest
from httpx import AsyncClient

from authcore.models import User
from tests.conftest import TEST_PASSWORD, AuthenticatedClient, RecordingDispatcher


@pytest.mark.asyncio
async def test_get_profile(authenticated_client: AuthenticatedClient, user: User):
    response = await authenticated_client.get("/api/users/me")
    assert response.status_code == 200
    data = response.json()
    assert data["email"] == user.email
    assert data["name"] == "Test User"
    assert data["status"] == "active"


@pytest.mark.asyncio
async def test_profile_requires_auth(client: AsyncClient):
    response = await client.get("/api/users/me")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_update_name(authenticated_client: AuthenticatedClient):
    response = await authenticated_client.patch("/api/users/me", json={"name": " Renamed "})
    assert response.status_code == 200
    assert response.json()["name"] == "Renamed"


@pytest.mark.asyncio
async def test_update_name_too_short(authenticated_client: AuthenticatedClient):
    response = await authenticated_client.patch("/api/users/me", json={"name": "x"})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_change_password(authenticated_client: AuthenticatedClient, client: AsyncClient, user: User):
    response = await authenticated_client.post(
        "/api/users/me/password",
        json={"old_password": TEST_PASSWORD, "new_password": "Another-Pass2"},
    )
    assert response.status_code == 200

    login = await client.post(
        "/api/auth/login/password",
        json={"email": user.email, "password": "Another-Pass2"},
    )
    assert login.status_code == 200


@pytest.mark.asyncio
async def test_change_password_wrong_old(authenticated_client: AuthenticatedClient):
    response = await authenticated_client.post(
        "/api/users/me/password",
        json={"old_password": "Not-The-Pass1", "new_password": "Another-Pass2"},
    )
    assert response.status_code == 400
    assert response.json()["code"] == "10-0008"


@pytest.mark.asyncio
async def test_change_email(
    authenticated_client: AuthenticatedClient,
    client: AsyncClient,
    dispatcher: RecordingDispatcher,
):
    await client.post(
        "/api/auth/send-code", json={"email": "moved@example.com", "purpose": "change_email"}
    )

    response = await authenticated_client.post(
        "/api/users/me/email",
        json={"new_email": "moved@example.com", "code": dispatcher.last_code()},
    )

    assert response.status_code == 200
    assert response.json()["email"] == "moved@example.com"


@pytest.mark.asyncio
async def test_change_email_taken(authenticated_client: AuthenticatedClient, repos):
    await repos.users.create(User(email="taken@example.com", name="Taken"))

    response = await authenticated_client.post(
        "/api/users/me/email",
        json={"new_email": "taken@example.com", "code": "123456"},
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_login_history(authenticated_client: AuthenticatedClient, client: AsyncClient, user: User):
    await client.post(
        "/api/auth/login/password",
        json={"email": user.email, "password": "Wrong-Password-1"},
    )
    await client.post(
        "/api/auth/login/password",
        json={"email": user.email, "password": TEST_PASSWORD},
    )

    response = await authenticated_client.get("/api/users/me/logins", params={"limit": 5})

    assert response.status_code == 200
    entries = response.json()
    assert {entry["status"] for entry in entries} == {"success", "failed"}
    assert all("email" not in entry for entry in entries)


@pytest.mark.asyncio
async def test_login_history_limit_bounds(authenticated_client: AuthenticatedClient):
    response = await authenticated_client.get("/api/users/me/logins", params={"limit": 500})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_update_bio_and_phone(authenticated_client: AuthenticatedClient):
    response = await authenticated_client.patch(
        "/api/users/me", json={"bio": "  Plays chess on weekends.  ", "phone": "13812345678"}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["bio"] == "Plays chess on weekends."
    assert data["phone"] == "13812345678"
    assert data["name"] == "Test User"


@pytest.mark.asyncio
async def test_empty_phone_clears_it(authenticated_client: AuthenticatedClient):
    await authenticated_client.patch("/api/users/me", json={"phone": "13812345678"})

    response = await authenticated_client.patch("/api/users/me", json={"phone": ""})

    assert response.status_code == 200
    assert response.json()["phone"] is None


@pytest.mark.asyncio
@pytest.mark.parametrize("phone", ["12812345678", "1381234567", "+8613812345678"])
async def test_invalid_phone(authenticated_client: AuthenticatedClient, phone: str):
    response = await authenticated_client.patch("/api/users/me", json={"phone": phone})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_bio_too_long(authenticated_client: AuthenticatedClient):
    response = await authenticated_client.patch("/api/users/me", json={"bio": "x" * 501})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_update_avatar(authenticated_client: AuthenticatedClient, repos, user: User):
    url = "https://cdn.example.com/avatars/test.png"

    response = await authenticated_client.put("/api/users/me/avatar", json={"avatar_url": url})

    assert response.status_code == 200
    assert response.json() == {"avatar_url": url}
    assert (await repos.users.find_by_id(user.id)).avatar_url == url


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "avatar_url",
    ["not a url", "ftp://cdn.example.com/a.png", "https://cdn.example.com/" + "a" * 500],
)
async def test_update_avatar_rejects_bad_url(authenticated_client: AuthenticatedClient, avatar_url: str):
    response = await authenticated_client.put(
        "/api/users/me/avatar", json={"avatar_url": avatar_url}
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_get_public_profile(authenticated_client: AuthenticatedClient, repos):
    other = await repos.users.create(
        User(
            email="other@example.com",
            name="Other",
            bio="Hello",
            phone="13912345678",
            avatar_url="https://cdn.example.com/o.png",
            password_hash="secret-hash",
        )
    )

    response = await authenticated_client.get(f"/api/users/{other.id}")

    assert response.status_code == 200
    data = response.json()
    assert set(data) == {"id", "name", "avatar_url", "bio", "created_at"}
    assert data["id"] == other.id
    assert data["bio"] == "Hello"


@pytest.mark.asyncio
async def test_public_profile_hides_inactive_users(authenticated_client: AuthenticatedClient, repos):
    gone = await repos.users.create(
        User(email="gone@example.com", name="Gone", status="deleted")
    )

    response = await authenticated_client.get(f"/api/users/{gone.id}")
    assert response.status_code == 404

    response = await authenticated_client.get("/api/users/does-not-exist")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_public_profile_requires_auth(client: AsyncClient, user: User):
    response = await client.get(f"/api/users/{user.id}")
    assert response.status_code == 401
