"""
tests/test_auth_redirect.py -- Integration tests for the page redirect chain.

These tests exercise both authorization stages end-to-end through the real
ASGI stack using the web fixture (follow_redirects=False). We assert on
redirect Location headers directly -- following the redirect would hide them.

Coverage:
  - No cookie on a protected page -> 302 /login?redirect={path} (edge stage)
  - Cookie present but invalid -> 302 to login from the page guard, stale cookie deleted
  - /login with a cookie -> 302 /dashboard; without -> 200 page descriptor
  - /dashboard -> 302 to the principal's own dashboard
  - Wrong role on a dashboard -> 403, right role -> 200
  - Logout endpoint is reachable without a cookie
  - Security: redirect= is always a relative path (open-redirect prevention)

Why integration tests over unit tests:
  The edge stage and the page guard are separate layers. Only a request through
  the real middleware stack shows that they compose without loops or gaps.
"""

from __future__ import annotations

from urllib.parse import parse_qs, urlparse

import pytest


def _redirect_param(location: str) -> list[str]:
    return parse_qs(urlparse(location).query).get("redirect", [])


def _login(client, manager, ids, username: str) -> str:
    token = manager.create_session(ids[username])
    client.cookies.set("session_token", token)
    return token


class TestEdgeStage:
    @pytest.mark.parametrize("path", ["/dashboard/admin", "/dashboard/guru", "/dashboard", "/"])
    def test_unauthenticated_redirects_to_login(self, web, path: str) -> None:
        client, _manager, _ids = web
        resp = client.get(path)
        assert resp.status_code == 302
        location = resp.headers["location"]
        assert location.startswith("/login?")
        assert _redirect_param(location) == [path]

    def test_admin_dashboard_location_is_exact(self, web) -> None:
        client, _manager, _ids = web
        resp = client.get("/dashboard/admin")
        assert resp.headers["location"] == "/login?redirect=/dashboard/admin"

    def test_login_page_without_cookie_is_served(self, web) -> None:
        client, _manager, _ids = web
        resp = client.get("/login")
        assert resp.status_code == 200
        assert resp.json() == {"page": "login", "redirect": "/dashboard"}

    def test_login_page_with_cookie_redirects_to_dashboard(self, web) -> None:
        client, manager, ids = web
        _login(client, manager, ids, "guru1")
        resp = client.get("/login")
        assert resp.status_code == 302
        assert resp.headers["location"] == "/dashboard"

    def test_logout_reachable_without_cookie(self, web) -> None:
        client, _manager, _ids = web
        resp = client.post("/api/auth/logout")
        assert resp.status_code == 200
        assert resp.json() == {"success": True}

    def test_static_assets_are_not_redirected(self, web) -> None:
        """Bypassed paths reach the router; nothing is mounted there, so 404 JSON."""
        client, _manager, _ids = web
        resp = client.get("/static/app.css")
        assert resp.status_code == 404
        assert "error" in resp.json()


class TestPageGuard:
    def test_garbage_cookie_redirects_and_clears_cookie(self, web) -> None:
        client, _manager, _ids = web
        client.cookies.set("session_token", "not-a-real-token")
        resp = client.get("/dashboard/admin")
        assert resp.status_code == 302
        assert _redirect_param(resp.headers["location"]) == ["/dashboard/admin"]
        set_cookie = resp.headers.get("set-cookie", "").lower()
        assert "session_token=" in set_cookie
        assert "max-age=0" in set_cookie

    def test_revoked_session_does_not_loop(self, web) -> None:
        """/login bounces to /dashboard, which bounces back to /login with the cookie cleared."""
        client, manager, ids = web
        token = _login(client, manager, ids, "admin1")
        manager.delete_session(token)

        first = client.get("/login")
        assert first.headers["location"] == "/dashboard"
        second = client.get("/dashboard")
        assert second.status_code == 302
        assert _redirect_param(second.headers["location"]) == ["/dashboard"]
        assert "max-age=0" in second.headers.get("set-cookie", "").lower()

    @pytest.mark.parametrize(
        ("username", "home"),
        [("admin1", "/dashboard/admin"), ("guru1", "/dashboard/guru"), ("siswa1", "/dashboard/siswa")],
    )
    def test_dashboard_redirects_to_role_home(self, web, username: str, home: str) -> None:
        client, manager, ids = web
        _login(client, manager, ids, username)
        resp = client.get("/dashboard")
        assert resp.status_code == 302
        assert resp.headers["location"] == home

    def test_root_redirects_to_dashboard(self, web) -> None:
        client, manager, ids = web
        _login(client, manager, ids, "siswa1")
        resp = client.get("/")
        assert resp.status_code == 302
        assert resp.headers["location"] == "/dashboard"

    @pytest.mark.parametrize("path", ["/dashboard/admin", "/dashboard/guru"])
    def test_student_is_forbidden_from_other_dashboards(self, web, path: str) -> None:
        client, manager, ids = web
        _login(client, manager, ids, "siswa1")
        resp = client.get(path)
        assert resp.status_code == 403
        assert resp.json() == {"error": "Forbidden"}

    def test_own_dashboard_is_served_with_principal(self, web) -> None:
        client, manager, ids = web
        _login(client, manager, ids, "admin1")
        resp = client.get("/dashboard/admin")
        assert resp.status_code == 200
        body = resp.json()
        assert body["page"] == "dashboard/admin"
        assert body["user"] == {"id": ids["admin1"], "username": "admin1", "full_name": "Admin Satu", "role": "ADMIN"}


class TestReturnTarget:
    def test_login_page_keeps_relative_target(self, web) -> None:
        client, _manager, _ids = web
        resp = client.get("/login", params={"redirect": "/dashboard/guru"})
        assert resp.json()["redirect"] == "/dashboard/guru"

    @pytest.mark.parametrize("target", ["https://attacker.example/", "//attacker.example", "/\\attacker.example"])
    def test_login_page_drops_off_site_target(self, web, target: str) -> None:
        client, _manager, _ids = web
        resp = client.get("/login", params={"redirect": target})
        assert resp.status_code == 200
        assert resp.json()["redirect"] == "/dashboard"
        assert "attacker" not in resp.text

    def test_redirect_param_is_always_a_relative_path(self, web) -> None:
        client, _manager, _ids = web
        resp = client.get("/dashboard/siswa")
        target = _redirect_param(resp.headers["location"])[0]
        assert target.startswith("/")
        assert not target.startswith("//")
