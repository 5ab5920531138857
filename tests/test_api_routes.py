"""
tests/test_api_routes.py -- Integration tests for the /api/v1 routes.

These tests exercise the full stack: FastAPI routing -> middleware -> auth
dependency injection -> stores -> response model serialization -> error
envelope rendering.

Coverage:
  - Login: cookie delivery, no token in body, bad credentials, body validation
  - Session lifecycle over HTTP: me, logout, supersession, cookie clearing
  - Role gates: superadmin refused on admin-only submit, admin refused on superadmin routes
  - Knowledge request end to end: submit -> pending -> approve -> history
  - PDF download ownership
  - Admin creation and reports

Fixtures used (from conftest.py):
  - client: TestClient with seeded accounts (accounts.superadmin / admin / other_admin)
  - login_as: returns a bearer token and leaves the cookie jar empty
  - auth_header: builds an Authorization header from a token
"""

from __future__ import annotations

PDF_BYTES = b"%PDF-1.4\n1 0 obj\n<<>>\nendobj\n%%EOF\n"


def _submit_text(client, headers, title: str = "Satellite orbit parameters", content: str = "Apogee 35786 km"):
    return client.post(
        "/api/v1/knowledge-requests",
        data={"title": title, "type": "text", "content": content},
        headers=headers,
    )


class TestLogin:
    def test_login_sets_cookie_not_body_token(self, client, accounts, password) -> None:
        resp = client.post("/api/v1/auth/login", json={"email": accounts.admin.email, "password": password})
        assert resp.status_code == 200, resp.text

        data = resp.json()
        assert data["user"] == {"id": accounts.admin.id, "email": accounts.admin.email, "role": "admin"}
        assert data["expires_in"] > 0
        assert "token" not in data and "access_token" not in data

        assert resp.cookies.get("auth_token")
        set_cookie = resp.headers["set-cookie"].lower()
        assert "httponly" in set_cookie
        assert "samesite=strict" in set_cookie
        assert resp.headers["cache-control"] == "no-store"

    def test_email_is_case_insensitive(self, client, accounts, password) -> None:
        resp = client.post("/api/v1/auth/login", json={"email": accounts.admin.email.upper(), "password": password})
        assert resp.status_code == 200, resp.text

    def test_bad_credentials(self, client, accounts) -> None:
        resp = client.post("/api/v1/auth/login", json={"email": accounts.admin.email, "password": "nope"})
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "bad_credentials"

        unknown = client.post("/api/v1/auth/login", json={"email": "nobody@example.org", "password": "nope"})
        assert unknown.status_code == 401
        assert unknown.json() == resp.json()

    def test_missing_fields_are_a_400(self, client) -> None:
        resp = client.post("/api/v1/auth/login", json={"email": "analyst@example.org"})
        assert resp.status_code == 400
        body = resp.json()["error"]
        assert body["code"] == "validation_error"
        assert any(e["param"] == "password" for e in body["errors"])


class TestSessionLifecycle:
    def test_me_with_cookie(self, client, accounts, password) -> None:
        client.post("/api/v1/auth/login", json={"email": accounts.admin.email, "password": password})
        resp = client.get("/api/v1/auth/me")
        assert resp.status_code == 200
        assert resp.json()["email"] == accounts.admin.email

    def test_me_with_bearer(self, client, accounts, login_as, auth_header) -> None:
        token = login_as(accounts.superadmin.email)
        resp = client.get("/api/v1/auth/me", headers=auth_header(token))
        assert resp.status_code == 200
        assert resp.json()["role"] == "superadmin"

    def test_no_token_is_401(self, client) -> None:
        resp = client.get("/api/v1/auth/me")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "unauthenticated"

    def test_garbage_token_is_403_and_clears_cookie(self, client, auth_header) -> None:
        resp = client.get("/api/v1/auth/me", headers=auth_header("garbage"))
        assert resp.status_code == 403
        assert "max-age=0" in resp.headers["set-cookie"].lower()

    def test_logout_revokes_token(self, client, accounts, login_as, auth_header) -> None:
        token = login_as(accounts.admin.email)
        out = client.post("/api/v1/auth/logout", headers=auth_header(token))
        assert out.status_code == 200
        assert out.json() == {"message": "Logout successful"}
        assert "max-age=0" in out.headers["set-cookie"].lower()

        again = client.get("/api/v1/auth/me", headers=auth_header(token))
        assert again.status_code == 403
        assert "max-age=0" in again.headers["set-cookie"].lower()

    def test_second_login_supersedes_first(self, client, accounts, login_as, auth_header) -> None:
        first = login_as(accounts.admin.email)
        second = login_as(accounts.admin.email)
        assert client.get("/api/v1/auth/me", headers=auth_header(first)).status_code == 403
        assert client.get("/api/v1/auth/me", headers=auth_header(second)).status_code == 200

    def test_sessions_listing(self, client, accounts, login_as, auth_header) -> None:
        login_as(accounts.admin.email)
        su = login_as(accounts.superadmin.email)
        resp = client.get("/api/v1/auth/sessions", headers=auth_header(su))
        assert resp.status_code == 200
        data = resp.json()
        assert data["count"] == 2
        assert {s["email"] for s in data["sessions"]} == {accounts.admin.email, accounts.superadmin.email}

    def test_sessions_listing_requires_superadmin(self, client, accounts, login_as, auth_header) -> None:
        token = login_as(accounts.admin.email)
        resp = client.get("/api/v1/auth/sessions", headers=auth_header(token))
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "forbidden"


class TestKnowledgeRequests:
    def test_superadmin_cannot_submit(self, client, accounts, login_as, auth_header) -> None:
        token = login_as(accounts.superadmin.email)
        resp = _submit_text(client, auth_header(token))
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "forbidden"

    def test_admin_cannot_review(self, client, accounts, login_as, auth_header) -> None:
        token = login_as(accounts.admin.email)
        assert client.get("/api/v1/knowledge-requests/pending", headers=auth_header(token)).status_code == 403
        assert client.post("/api/v1/knowledge-requests/1/approve", headers=auth_header(token)).status_code == 403

    def test_validation_errors_are_field_level(self, client, accounts, login_as, auth_header) -> None:
        token = login_as(accounts.admin.email)
        resp = _submit_text(client, auth_header(token), title="abcd")
        assert resp.status_code == 400
        errors = resp.json()["error"]["errors"]
        assert [e["param"] for e in errors] == ["title"]

    def test_link_must_be_url(self, client, accounts, login_as, auth_header) -> None:
        token = login_as(accounts.admin.email)
        resp = client.post(
            "/api/v1/knowledge-requests",
            data={"title": "Launch manifest", "type": "link", "content": "not-a-url"},
            headers=auth_header(token),
        )
        assert resp.status_code == 400

    def test_pdf_requires_file(self, client, accounts, login_as, auth_header) -> None:
        token = login_as(accounts.admin.email)
        resp = client.post(
            "/api/v1/knowledge-requests",
            data={"title": "Ground station manual", "type": "pdf"},
            headers=auth_header(token),
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["errors"][0]["param"] == "file"

    def test_submit_approve_history(self, client, accounts, login_as, auth_header) -> None:
        admin = auth_header(login_as(accounts.admin.email))
        su = auth_header(login_as(accounts.superadmin.email))

        created = _submit_text(client, admin)
        assert created.status_code == 200, created.text
        assert created.json()["status"] == "pending"
        request_id = created.json()["id"]

        pending = client.get("/api/v1/knowledge-requests/pending", headers=su).json()
        assert [(p["id"], p["admin_email"]) for p in pending] == [(request_id, accounts.admin.email)]

        decided = client.post(f"/api/v1/knowledge-requests/{request_id}/approve", headers=su)
        assert decided.status_code == 200, decided.text
        assert decided.json()["status"] == "approved"
        assert decided.json()["decision_by"] == accounts.superadmin.id

        repeat = client.post(f"/api/v1/knowledge-requests/{request_id}/reject", headers=su)
        assert repeat.status_code == 409
        assert repeat.json()["error"]["code"] == "conflict"

        assert client.get("/api/v1/knowledge-requests/pending", headers=su).json() == []

        history = client.get("/api/v1/reports/request-history", headers=su).json()
        assert len(history) == 1
        assert history[0]["title"] == "Satellite orbit parameters"
        assert history[0]["decision"] == "APPROVED"
        assert history[0]["decision_by"] == accounts.superadmin.id
        assert history[0]["decided_by"] == accounts.superadmin.email

        own = client.get("/api/v1/knowledge-requests", headers=admin).json()
        assert own[0]["status"] == "approved"
        assert own[0]["decision_date"] is not None

    def test_decide_rejects_unknown_action_and_id(self, client, accounts, login_as, auth_header) -> None:
        admin = auth_header(login_as(accounts.admin.email))
        su = auth_header(login_as(accounts.superadmin.email))
        request_id = _submit_text(client, admin).json()["id"]

        bad_action = client.post(f"/api/v1/knowledge-requests/{request_id}/archive", headers=su)
        assert bad_action.status_code == 400
        assert bad_action.json()["error"]["code"] == "invalid_action"

        missing = client.post("/api/v1/knowledge-requests/9999/approve", headers=su)
        assert missing.status_code == 404


class TestAttachmentDownload:
    def _upload(self, client, headers) -> str:
        resp = client.post(
            "/api/v1/knowledge-requests",
            data={"title": "Ground station manual", "type": "pdf", "description": "Rev B"},
            files={"file": ("manual.pdf", PDF_BYTES, "application/pdf")},
            headers=headers,
        )
        assert resp.status_code == 200, resp.text
        own = client.get("/api/v1/knowledge-requests", headers=headers).json()
        assert own[0]["content"] is None
        return own[0]["file_url"]

    def test_owner_downloads(self, client, accounts, login_as, auth_header) -> None:
        admin = auth_header(login_as(accounts.admin.email))
        file_url = self._upload(client, admin)

        resp = client.get(file_url, headers=admin)
        assert resp.status_code == 200
        assert resp.content == PDF_BYTES
        assert resp.headers["content-type"] == "application/pdf"

    def test_non_owner_is_forbidden(self, client, accounts, login_as, auth_header) -> None:
        admin = auth_header(login_as(accounts.admin.email))
        file_url = self._upload(client, admin)

        other = auth_header(login_as(accounts.other_admin.email))
        assert client.get(file_url, headers=other).status_code == 403
        su = auth_header(login_as(accounts.superadmin.email))
        assert client.get(file_url, headers=su).status_code == 403

    def test_unknown_file_is_404(self, client, accounts, login_as, auth_header) -> None:
        admin = auth_header(login_as(accounts.admin.email))
        resp = client.get("/api/v1/knowledge-files/kr-0-0.pdf", headers=admin)
        assert resp.status_code == 404

    def test_download_requires_session(self, client, accounts, login_as, auth_header) -> None:
        file_url = self._upload(client, auth_header(login_as(accounts.admin.email)))
        assert client.get(file_url).status_code == 401


class TestAdminsAndReports:
    def test_create_admin(self, client, accounts, login_as, auth_header) -> None:
        su = auth_header(login_as(accounts.superadmin.email))
        body = {"email": "New.Analyst@Example.org", "password": "Str0ng!Passw0rd", "role": "admin"}

        resp = client.post("/api/v1/auth/admins", json=body, headers=su)
        assert resp.status_code == 200, resp.text
        assert resp.json()["email"] == "new.analyst@example.org"
        assert resp.json()["role"] == "admin"

        assert client.post("/api/v1/auth/admins", json=body, headers=su).status_code == 409
        login_as("new.analyst@example.org", "Str0ng!Passw0rd")

    def test_create_admin_password_rules(self, client, accounts, login_as, auth_header) -> None:
        su = auth_header(login_as(accounts.superadmin.email))
        body = {"email": "weak@example.org", "password": "alllowercase", "role": "admin"}
        resp = client.post("/api/v1/auth/admins", json=body, headers=su)
        assert resp.status_code == 400
        assert resp.json()["error"]["errors"][0]["param"] == "password"

    def test_create_admin_rejects_password_over_bcrypt_limit(self, client, accounts, login_as, auth_header) -> None:
        su = auth_header(login_as(accounts.superadmin.email))
        body = {"email": "verbose@example.org", "password": "Aa1!" + "x" * 80, "role": "admin"}
        resp = client.post("/api/v1/auth/admins", json=body, headers=su)
        assert resp.status_code == 400, resp.text
        assert resp.json()["error"]["errors"][0]["param"] == "password"
        assert client.get("/api/v1/reports/total-admins", headers=su).json() == {"count": 3}

    def test_create_admin_requires_superadmin(self, client, accounts, login_as, auth_header) -> None:
        admin = auth_header(login_as(accounts.admin.email))
        body = {"email": "sneaky@example.org", "password": "Str0ng!Passw0rd", "role": "superadmin"}
        assert client.post("/api/v1/auth/admins", json=body, headers=admin).status_code == 403

    def test_total_admins(self, client, accounts, login_as, auth_header) -> None:
        su = auth_header(login_as(accounts.superadmin.email))
        resp = client.get("/api/v1/reports/total-admins", headers=su)
        assert resp.status_code == 200
        assert resp.json() == {"count": 3}

    def test_reports_require_superadmin(self, client, accounts, login_as, auth_header) -> None:
        admin = auth_header(login_as(accounts.admin.email))
        assert client.get("/api/v1/reports/total-admins", headers=admin).status_code == 403
        assert client.get("/api/v1/reports/request-history", headers=admin).status_code == 403
        assert client.get("/api/v1/reports/total-admins").status_code == 401

    def test_admin_requests(self, client, add_admin_request, accounts, login_as, auth_header) -> None:
        add_admin_request(accounts.admin.id, "superadmin")
        add_admin_request(accounts.other_admin.id, "superadmin", status="rejected")
        su = auth_header(login_as(accounts.superadmin.email))
        rows = client.get("/api/v1/auth/admin-requests", headers=su).json()
        assert [(r["name"], r["type"]) for r in rows] == [(accounts.admin.email, "superadmin")]
