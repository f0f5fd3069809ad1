import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from app.routers.site import _safe_file
from conftest import VALID_SUBMISSION, FakeTransport, make_settings


@pytest.fixture
def dry_run():
    return FakeTransport(name="dry-run", sends_acknowledgment=False, delivered=False)


def _client(transport, **overrides):
    return TestClient(create_app(make_settings(**overrides), transport=transport))


def test_contact_success_without_transport(dry_run):
    resp = _client(dry_run).post("/api/contact", json=VALID_SUBMISSION)
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "message": "Message received! I'll get back to you soon."}


def test_contact_with_no_configured_transport_makes_no_network_call(monkeypatch):
    import aiosmtplib
    import httpx

    def _boom(*args, **kwargs):
        raise AssertionError("network used")

    monkeypatch.setattr(aiosmtplib, "SMTP", _boom)
    monkeypatch.setattr(httpx.AsyncClient, "send", _boom)
    client = TestClient(create_app(make_settings()))
    resp = client.post("/api/contact", json=VALID_SUBMISSION)
    assert resp.json()["success"] is True


def test_contact_validation_errors(dry_run):
    resp = _client(dry_run).post(
        "/api/contact",
        json={"name": "A", "email": "bad", "subject": "Hi", "message": "Hello there"},
    )
    assert resp.status_code == 400
    assert resp.json() == {
        "success": False,
        "message": "Validation failed",
        "errors": [
            {"field": "name", "message": "Name must be between 2 and 50 characters"},
            {"field": "email", "message": "Please provide a valid email address"},
        ],
    }
    assert dry_run.sent == []


@pytest.mark.parametrize("message", ["Hey", "m" * 1001])
def test_contact_message_bounds(dry_run, message):
    resp = _client(dry_run).post("/api/contact", json={**VALID_SUBMISSION, "message": message})
    assert resp.status_code == 400
    assert [e["field"] for e in resp.json()["errors"]] == ["message"]


def test_contact_malformed_body_is_a_validation_error(dry_run):
    resp = _client(dry_run).post("/api/contact", content=b"not json", headers={"content-type": "application/json"})
    assert resp.status_code == 400
    assert len(resp.json()["errors"]) == 4


def test_contact_smtp_sends_two_messages():
    transport = FakeTransport(fail_for=["jane@example.com"])
    resp = _client(transport).post("/api/contact", json=VALID_SUBMISSION)
    assert resp.json()["success"] is True
    assert [s["to"] for s in transport.sent] == ["owner@example.com", "jane@example.com"]


def test_contact_admin_failure_is_generic():
    transport = FakeTransport(fail_for=["owner@example.com"])
    resp = _client(transport).post("/api/contact", json=VALID_SUBMISSION)
    assert resp.status_code == 200
    assert resp.json() == {"success": False, "message": "Failed to send message. Please try again later."}


def test_contact_unexpected_error_is_500():
    class ExplodingTransport(FakeTransport):
        async def send(self, to, subject, html, reply_to=None):
            raise RuntimeError("boom")

    resp = _client(ExplodingTransport()).post("/api/contact", json=VALID_SUBMISSION)
    assert resp.status_code == 500
    assert resp.json() == {"success": False, "message": "Failed to send message. Please try again later."}


def test_sixth_contact_submission_is_rate_limited(dry_run, monkeypatch):
    app = create_app(make_settings(), transport=dry_run)
    calls = []
    original = app.state.intake.handle_submission

    async def _counting(raw):
        calls.append(raw)
        return await original(raw)

    monkeypatch.setattr(app.state.intake, "handle_submission", _counting)
    client = TestClient(app)

    for _ in range(5):
        assert client.post("/api/contact", json=VALID_SUBMISSION).status_code == 200
    resp = client.post("/api/contact", json=VALID_SUBMISSION)

    assert resp.status_code == 429
    assert resp.json() == {"success": False, "message": "Too many contact form submissions, please try again later."}
    assert "retry-after" in resp.headers
    assert len(calls) == 5


def test_contact_limit_is_per_client_address(dry_run):
    client = _client(dry_run, CONTACT_RATE_LIMIT="1")
    first = client.post("/api/contact", json=VALID_SUBMISSION, headers={"X-Forwarded-For": "10.0.0.1"})
    other = client.post("/api/contact", json=VALID_SUBMISSION, headers={"X-Forwarded-For": "10.0.0.2"})
    again = client.post("/api/contact", json=VALID_SUBMISSION, headers={"X-Forwarded-For": "10.0.0.1"})
    assert (first.status_code, other.status_code, again.status_code) == (200, 200, 429)


def test_api_wide_rate_limit(dry_run):
    client = _client(dry_run, API_RATE_LIMIT="3")
    codes = [client.get("/api/portfolio").status_code for _ in range(4)]
    assert codes == [200, 200, 200, 429]
    assert client.get("/api/health").json()["message"] == "Too many requests from this IP, please try again later."


def test_portfolio_and_projects(dry_run):
    client = _client(dry_run)
    portfolio = client.get("/api/portfolio").json()
    assert portfolio["personal"]["name"] == "Subash S"
    assert {"personal", "about", "skills", "languages"} <= set(portfolio)

    projects = client.get("/api/projects").json()
    assert len(projects) == 5
    apks = [apk for p in projects for apk in p["apkDownloads"]]
    assert {"label": "Fair Split", "fileName": "Fair Split.apk", "url": "/apk/Fair%20Split.apk"} in apks


def test_unknown_api_route_is_json_404(dry_run):
    client = _client(dry_run)
    for resp in (client.get("/api/nope"), client.post("/api/nope", json={})):
        assert resp.status_code == 404
        assert resp.json() == {"success": False, "message": "API route not found"}


def test_unhandled_error_is_generic_500(dry_run):
    app = create_app(make_settings(), transport=dry_run)

    @app.post("/boom")
    async def boom():
        raise RuntimeError("kaboom")

    resp = TestClient(app, raise_server_exceptions=False).post("/boom")
    assert resp.status_code == 500
    assert resp.json() == {"success": False, "message": "Something went wrong!"}


def test_unhandled_error_keeps_security_and_cors_headers(dry_run):
    app = create_app(make_settings(CORS_ORIGINS="http://localhost:5173"), transport=dry_run)

    @app.post("/boom")
    async def boom():
        raise RuntimeError("kaboom")

    resp = TestClient(app, raise_server_exceptions=False).post("/boom", headers={"Origin": "http://localhost:5173"})
    assert resp.status_code == 500
    assert "default-src 'self'" in resp.headers["content-security-policy"]
    assert resp.headers["x-content-type-options"] == "nosniff"
    assert resp.headers["access-control-allow-origin"] == "http://localhost:5173"


@pytest.fixture
def site_dirs(tmp_path):
    dist = tmp_path / "dist"
    (dist / "assets").mkdir(parents=True)
    (dist / "index.html").write_text("<html>portfolio</html>")
    (dist / "assets" / "app.js").write_text("console.log('hi')")
    apk = tmp_path / "apk"
    apk.mkdir()
    (apk / "Fair Split.apk").write_bytes(b"PK\x03\x04")
    return dist, apk


def test_spa_fallback_and_assets(dry_run, site_dirs):
    dist, apk = site_dirs
    client = _client(dry_run, STATIC_DIR=str(dist), APK_DIR=str(apk))

    assert client.get("/").text == "<html>portfolio</html>"
    assert client.get("/about/me").text == "<html>portfolio</html>"
    assert client.get("/projects/").text == "<html>portfolio</html>"
    assert client.get("/assets/app.js").text == "console.log('hi')"
    assert client.get("/projects/assets/app.js").text == "console.log('hi')"


def test_apk_downloads(dry_run, site_dirs):
    dist, apk = site_dirs
    client = _client(dry_run, STATIC_DIR=str(dist), APK_DIR=str(apk))

    for url in ("/apk/Fair%20Split.apk", "/projects/apk/Fair%20Split.apk"):
        resp = client.get(url)
        assert resp.status_code == 200
        assert resp.content == b"PK\x03\x04"
    assert client.get("/apk/missing.apk").status_code == 404


def test_debug_index_serves_built_document(dry_run, site_dirs):
    dist, apk = site_dirs
    client = _client(dry_run, STATIC_DIR=str(dist), APK_DIR=str(apk))
    assert client.get("/_debug/index").text == "<html>portfolio</html>"
    assert "default-src" in client.get("/_debug/csp").json()["csp"]


def test_missing_build_is_404(dry_run, tmp_path):
    client = _client(dry_run, STATIC_DIR=str(tmp_path / "nowhere"))
    resp = client.get("/")
    assert resp.status_code == 404
    assert resp.json()["success"] is False


def test_safe_file_rejects_traversal(site_dirs):
    dist, apk = site_dirs
    assert _safe_file(apk, "../dist/index.html") is None
    assert _safe_file(apk, "Fair Split.apk") == (apk / "Fair Split.apk").resolve()
    assert _safe_file(apk, "") is None


def test_cors_preflight_allows_deploy_origin(dry_run):
    client = _client(dry_run, CORS_ORIGINS="http://localhost:5173")
    resp = client.options(
        "/api/contact",
        headers={"Origin": "http://localhost:5173", "Access-Control-Request-Method": "POST"},
    )
    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == "http://localhost:5173"


def test_contact_over_api_relay_makes_one_call():
    import httpx

    from app.core.mailer import ResendTransport

    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"id": "re_1"})

    settings = make_settings(RESEND_API_KEY="re_key")
    transport = ResendTransport(settings, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    client = TestClient(create_app(settings, transport=transport))

    resp = client.post("/api/contact", json=VALID_SUBMISSION)

    assert resp.json()["success"] is True
    assert len(calls) == 1
    assert b"owner@example.com" in calls[0].content
