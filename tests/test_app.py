from app import create_app
from config import TestConfig

EVENT = {
    "title": "Hack Night",
    "description": "Build something overnight",
    "date": "2030-05-01T18:00:00Z",
    "location": "Lab 3",
}


def seeded_technofest(client):
    return client.get("/api/technofest/slug/web-dev-challenge").get_json()


def test_home(client):
    res = client.get("/")
    assert res.status_code == 200
    assert "running" in res.get_json()["message"]


def test_unknown_route_is_json_404(client):
    res = client.get("/api/nowhere")
    assert res.status_code == 404
    assert "message" in res.get_json()


def test_public_lists_are_seeded(client):
    events = client.get("/api/events").get_json()
    assert len(events) == 2
    assert events[0]["date"].startswith("2024-")

    assert len(client.get("/api/gallery").get_json()) == 2
    assert client.get("/api/about").get_json()[0]["section"] == "hero"
    assert len(client.get("/api/polls").get_json()) == 1
    assert seeded_technofest(client)["team_min"] == 2


def test_missing_event_is_404(client):
    res = client.get("/api/events/does-not-exist")
    assert res.status_code == 404
    assert res.get_json()["message"] == "Event not found"


# ==================== auth and guards ====================

def test_admin_login_rejects_bad_password(client):
    res = client.post("/api/admin/login", json={"username": "admin", "password": "nope"})
    assert res.status_code == 401


def test_login_response_hides_password(client):
    res = client.post("/api/admin/login", json={"username": "admin", "password": "admin123"})
    assert res.status_code == 200
    assert "password" not in res.get_json()["admin"]


def test_admin_routes_need_a_token(client):
    assert client.post("/api/admin/events", json=EVENT).status_code == 401


def test_plain_user_cannot_use_admin_routes(client, login):
    headers = login("demo_user", "password123")

    assert client.post("/api/admin/events", json=EVENT, headers=headers).status_code == 403
    assert client.post("/api/admin/polls", json={}, headers=headers).status_code == 403
    assert client.get("/api/admin/users", headers=headers).status_code == 403


def test_coordinator_is_not_super_admin(client, login):
    headers = login("coordinator", "password123")

    assert client.get("/api/admin/users", headers=headers).status_code == 403
    assert client.get("/api/admin/registrations", headers=headers).status_code == 403


def test_logout_revokes_token(client, admin_headers):
    assert client.get("/api/admin/settings", headers=admin_headers).status_code == 200

    assert client.post("/api/admin/logout", headers=admin_headers).status_code == 200

    res = client.get("/api/admin/settings", headers=admin_headers)
    assert res.status_code == 401


def test_logout_forgets_expired_revocations(app, client, admin_headers):
    app.extensions["revoked_tokens"] = {"long-gone": 0}

    client.post("/api/admin/logout", headers=admin_headers)

    revoked = app.extensions["revoked_tokens"]
    assert "long-gone" not in revoked
    assert len(revoked) == 1


def test_revocations_are_per_app(client, admin_headers):
    client.post("/api/admin/logout", headers=admin_headers)

    other = create_app(TestConfig).test_client()

    assert other.get("/api/admin/settings", headers=admin_headers).status_code == 200


def test_user_signup_needs_approval(client, login):
    res = client.post(
        "/api/user/register",
        json={"username": "newbie", "email": "newbie@example.com", "password": "secret1"},
    )
    assert res.status_code == 201
    user = res.get_json()["user"]
    assert user["is_approved"] is False
    assert "password" not in user

    login_attempt = {"username": "newbie", "password": "secret1"}
    assert client.post("/api/user/login", json=login_attempt).status_code == 401

    super_admin = login("superadmin", "admin123")
    approved = client.patch(f"/api/admin/users/{user['id']}/approve", headers=super_admin)
    assert approved.get_json()["is_approved"] is True
    assert client.post("/api/user/login", json=login_attempt).status_code == 200


def test_duplicate_signup_is_rejected(client):
    res = client.post(
        "/api/user/register",
        json={"username": "demo_user", "email": "other@example.com", "password": "secret1"},
    )
    assert res.status_code == 400
    assert res.get_json()["message"] == "Username already exists"


def test_user_listing_hides_passwords(client, login):
    users = client.get("/api/admin/users", headers=login("superadmin", "admin123")).get_json()

    assert len(users) == 3
    assert all("password" not in user for user in users)


def test_super_admin_updates_user(client, login):
    headers = login("superadmin", "admin123")
    users = {u["username"]: u for u in client.get("/api/admin/users", headers=headers).get_json()}
    url = f"/api/admin/users/{users['demo_user']['id']}"

    res = client.patch(url, json={"role": "coordinator", "password": "new-secret"}, headers=headers)
    assert res.status_code == 200
    assert res.get_json()["role"] == "coordinator"
    assert "password" not in res.get_json()
    assert login("demo_user", "new-secret")

    clash = client.patch(url, json={"email": "coordinator@innovare.club"}, headers=headers)
    assert clash.status_code == 400
    assert client.patch("/api/admin/users/nobody", json={"role": "user"}, headers=headers).status_code == 404
    assert client.patch(url, json={"role": "overlord"}, headers=headers).status_code == 400


def test_coordinator_cannot_update_users(client, login):
    headers = login("coordinator", "password123")
    assert client.patch("/api/admin/users/anyone", json={"role": "super_admin"}, headers=headers).status_code == 403


def test_bulk_user_creation(client, login):
    headers = login("superadmin", "admin123")

    assert client.post("/api/admin/users/bulk", json={"users": "nope"}, headers=headers).status_code == 400

    res = client.post(
        "/api/admin/users/bulk",
        json={"users": [{"username": "alpha", "email": "alpha@example.com", "password": "secret1"}]},
        headers=headers,
    )
    assert res.status_code == 201
    assert res.get_json()["count"] == 1


# ==================== events ====================

def test_invalid_event_payload_is_400(client, admin_headers):
    res = client.post("/api/admin/events", json={**EVENT, "date": "someday"}, headers=admin_headers)

    assert res.status_code == 400
    assert res.get_json()["errors"][0]["loc"] == ["date"]


def test_featuring_an_event_unfeatures_the_rest(client, admin_headers):
    res = client.post("/api/admin/events", json={**EVENT, "featured": True}, headers=admin_headers)
    assert res.status_code == 201
    created = res.get_json()

    featured = [event["id"] for event in client.get("/api/events").get_json() if event["featured"]]
    assert featured == [created["id"]]


def test_event_patch_applies_only_sent_fields(client, admin_headers):
    created = client.post("/api/admin/events", json=EVENT, headers=admin_headers).get_json()

    res = client.patch(f"/api/admin/events/{created['id']}", json={"location": "Hall B"}, headers=admin_headers)

    assert res.status_code == 200
    assert res.get_json()["location"] == "Hall B"
    assert res.get_json()["title"] == "Hack Night"


def test_event_registration_flow(client, admin_headers):
    event_id = client.get("/api/events").get_json()[0]["id"]
    res = client.post(f"/api/events/{event_id}/register", json={"name": "Meera", "email": "meera@example.com"})
    assert res.status_code == 201
    registration = res.get_json()

    patched = client.patch(
        f"/api/admin/registrations/{registration['id']}/status", json={"status": "approved"}, headers=admin_headers
    )
    assert patched.get_json()["status"] == "approved"

    listed = client.get(f"/api/admin/events/{event_id}/registrations", headers=admin_headers).get_json()
    assert [r["event_type"] for r in listed] == ["Event"]


# ==================== community ====================

def test_coordinator_creates_poll_as_author(client, login):
    headers = login("coordinator", "password123")
    coordinator_id = client.post(
        "/api/user/login", json={"username": "coordinator", "password": "password123"}
    ).get_json()["user"]["id"]

    res = client.post(
        "/api/admin/polls",
        json={"title": "Best editor?", "options": ["vim", "emacs"], "created_by": "someone-else"},
        headers=headers,
    )

    assert res.status_code == 201
    assert res.get_json()["created_by"] == coordinator_id


def test_poll_responses(client):
    poll = client.get("/api/polls").get_json()[0]
    url = f"/api/polls/{poll['id']}/respond"

    assert client.post(url, json={"username": "demo_user", "selected_option": 1}).status_code == 201
    again = client.post(url, json={"username": "demo_user", "selected_option": 2})
    assert again.status_code == 400
    assert client.post(url, json={"username": "coordinator", "selected_option": 9}).status_code == 400
    assert client.post(url, json={"username": "ghost", "selected_option": 0}).status_code == 400

    result = client.get(f"/api/polls/{poll['id']}").get_json()
    assert result["total_votes"] == 1
    assert result["responses"][0]["username"] == "demo_user"


def test_announcement_with_replies(client):
    announcement = client.get("/api/announcements").get_json()[0]

    res = client.post(
        f"/api/announcements/{announcement['id']}/reply", json={"username": "demo_user", "content": "Thanks!"}
    )
    assert res.status_code == 201

    detail = client.get(f"/api/announcements/{announcement['id']}").get_json()
    assert [reply["content"] for reply in detail["replies"]] == ["Thanks!"]


# ==================== technofest ====================

def test_technofest_team_size_is_enforced(client):
    event = seeded_technofest(client)

    res = client.post(
        f"/api/technofest/{event['id']}/register",
        json={
            "team_name": "Solo",
            "contact_email": "solo@example.com",
            "members": [{"name": "Asha", "email": "asha@example.com"}, {"name": "  "}],
        },
    )

    assert res.status_code == 400
    assert res.get_json()["message"] == "Team size must be between 2 and 4 members"


def test_technofest_registration_shows_in_admin_list(backend_client):
    client = backend_client
    event = seeded_technofest(client)
    res = client.post(
        f"/api/technofest/{event['id']}/register",
        json={
            "team_name": "Null Pointers",
            "contact_email": "team@example.com",
            "members": [
                {"name": "Asha", "email": "asha@example.com"},
                {"name": "Dev", "email": "dev@example.com"},
                {"name": "Kim"},
            ],
        },
    )
    assert res.status_code == 201
    registration_id = res.get_json()["registration"]["id"]

    token = client.post("/api/admin/login", json={"username": "admin", "password": "admin123"}).get_json()["token"]
    headers = {"Authorization": f"Bearer {token}"}
    listed = client.get("/api/admin/registrations", headers=headers).get_json()
    techfest = [r for r in listed if r["event_type"] == "TechFest"]
    assert techfest[0]["member_count"] == 3
    assert techfest[0]["team_leader_name"] == "Asha"
    assert techfest[0]["event_id"] == event["id"]

    members = client.get(f"/api/admin/registrations/{registration_id}/team-members", headers=headers).get_json()
    assert sorted(member["name"] for member in members) == ["Dev", "Kim"]

    assert client.delete(f"/api/admin/registrations/{registration_id}", headers=headers).status_code == 200
    assert client.get("/api/admin/team-members", headers=headers).get_json() == []


def test_technofest_listing_filters(client, admin_headers):
    client.post(
        "/api/admin/technofest",
        json={
            "name": "Quiz",
            "category": "Fun",
            "short_description": "s",
            "description": "d",
            "team_min": 1,
            "team_max": 1,
            "is_active": False,
        },
        headers=admin_headers,
    )

    assert [e["name"] for e in client.get("/api/technofest?category=Fun").get_json()] == ["Quiz"]
    assert client.get("/api/technofest?category=Fun&active=true").get_json() == []
    assert len(client.get("/api/technofest").get_json()) == 2


# ==================== settings ====================

def test_site_settings(client, admin_headers):
    res = client.put("/api/admin/settings/theme", json={"value": "dark"}, headers=admin_headers)
    assert res.get_json() == {"key": "theme", "value": "dark"}

    assert client.get("/api/admin/settings/theme", headers=admin_headers).get_json()["value"] == "dark"
    assert client.get("/api/admin/settings/missing", headers=admin_headers).status_code == 404
    keys = [s["key"] for s in client.get("/api/admin/settings", headers=admin_headers).get_json()]
    assert sorted(keys) == ["background_spline_url", "theme"]


def test_db_probe_reports_backend(client):
    assert client.get("/api/test/db").get_json() == {"connected": False, "backend": "MemStorage"}
