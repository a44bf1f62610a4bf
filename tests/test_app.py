import pytest

import web.app as web_app
from web.run_api import gunicorn_command, pick_server, server_settings


@pytest.fixture
def client():
    web_app.app.config["TESTING"] = True
    with web_app.app.test_client() as c:
        yield c


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.get_json() == {"status": "ok"}


def test_device_requests_probe_when_screen_unknown(client, user_agents):
    resp = client.get("/device", headers={"User-Agent": user_agents["pixel_phone"]})
    assert resp.status_code == 202
    body = resp.get_json()
    assert body["probe"] == "needed"
    assert body["skipParam"] == "no_reload"
    assert "screen_width" in body["cookies"]


def test_device_after_probe_without_metrics(client, user_agents):
    resp = client.get("/device?no_reload=1", headers={"User-Agent": user_agents["pixel_phone"]})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["deviceType"] == "mobile"
    assert body["isKnownScreen"] is False
    assert body["orientation"] == "portrait"
    assert body["customVars"]["imageQuality"] == "low"


def test_device_reads_probe_cookies(client, user_agents):
    client.set_cookie("screen_width", "2560")
    client.set_cookie("screen_height", "1440")
    client.set_cookie("has_touch", "false")
    client.set_cookie("device_detected", "1")
    resp = client.get("/device", headers={"User-Agent": user_agents["mac_safari"]})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["deviceType"] == "desktop"
    assert body["os"] == "macOS"
    assert (body["screenWidth"], body["screenHeight"]) == (2560, 1440)
    assert body["isKnownScreen"] is True
    assert body["customVars"]["imageQuality"] == "high"
    assert body["customVars"]["layout"] == "landscape"
    assert body["customVars"]["hasTouch"] is False


def test_device_detected_flag_in_probe_response(client):
    client.set_cookie("device_detected", "1")
    resp = client.get("/device")
    assert resp.status_code == 202
    assert resp.get_json()["detected"] is True


def test_device_without_detected_cookie(client):
    assert client.get("/device").get_json()["detected"] is False


def test_device_with_auto_reload_disabled(client, monkeypatch, user_agents):
    monkeypatch.setenv("PROBE_AUTO_RELOAD", "false")
    resp = client.get("/device", headers={"User-Agent": user_agents["iphone"]})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["deviceType"] == "mobile"
    assert body["isKnownScreen"] is False
    assert body["orientation"] == "portrait"


def test_device_ignores_oversized_screen_cookie(client):
    client.set_cookie("screen_width", "9" * 5000)
    client.set_cookie("screen_height", "10")
    resp = client.get("/device")
    assert resp.status_code == 202

    resp = client.get("/device?no_reload=1")
    assert resp.status_code == 200
    assert resp.get_json()["isKnownScreen"] is False


def test_device_debug_format(client, user_agents):
    resp = client.get("/device?no_reload=1&format=debug", headers={"User-Agent": user_agents["slackbot"]})
    assert resp.status_code == 200
    assert resp.mimetype == "text/plain"
    text = resp.get_data(as_text=True)
    assert text.startswith("===== Device Detection Results =====")
    assert "Is Bot: Yes" in text


def test_device_html_format(client):
    resp = client.get("/device?no_reload=1&format=html")
    assert resp.mimetype == "text/html"
    assert "<h3>Device Detection Results</h3>" in resp.get_data(as_text=True)


def test_classify_merges_caller_vars(client, user_agents):
    resp = client.post("/classify", json={
        "userAgent": user_agents["ipad"],
        "screen": {"width": 1024, "height": 1366, "hasTouch": True},
        "customVars": {"theme": "dark", "fontSize": "18px"},
    })
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["deviceType"] == "tablet"
    assert body["os"] == "iPadOS"
    assert body["osVersion"] == "16.4"
    assert body["orientation"] == "portrait"
    assert body["customVars"]["theme"] == "dark"
    assert body["customVars"]["fontSize"] == "18px"
    assert body["customVars"]["navigationStyle"] == "compact"


def test_classify_without_screen(client):
    resp = client.post("/classify", json={})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["deviceType"] == "desktop"
    assert body["browser"] == "Unknown"


@pytest.mark.parametrize("payload", [
    {"userAgent": 42},
    {"screen": {"width": -1, "height": 10}},
    {"screen": {"width": "wide", "height": 10}},
    {"screen": {"orientation": "diagonal"}},
    {"screen": {"hasTouch": "yes"}},
    {"screen": "1920x1080"},
    {"customVars": ["theme"]},
    {"customVars": {"nested": {"a": 1}}},
])
def test_classify_rejects_bad_input(client, payload):
    resp = client.post("/classify", json=payload)
    assert resp.status_code == 400
    assert "error" in resp.get_json()


def test_classify_rejects_non_json(client):
    resp = client.post("/classify", data="not json", content_type="text/plain")
    assert resp.status_code == 400
    assert resp.get_json() == {"error": "Invalid JSON"}


def test_unexpected_failure_returns_500(client, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(web_app, "classify_client", boom)
    resp = client.post("/classify", json={"userAgent": "x"})
    assert resp.status_code == 500
    assert resp.get_json() == {"error": "Internal server error"}


def test_extra_bot_markers_are_configured():
    assert len(web_app.BOT_RULES) >= 16


def test_server_settings_and_choice(monkeypatch):
    monkeypatch.setenv("API_PORT", "9000")
    settings = server_settings()
    assert settings["port"] == 9000
    assert settings["threads"] == 4
    assert settings["log_level"] == "info"
    assert pick_server("Windows") == "waitress"
    assert pick_server("Linux") == "gunicorn"
    assert gunicorn_command(**settings)[2] == "127.0.0.1:9000"


def test_gunicorn_command():
    cmd = gunicorn_command("0.0.0.0", 8000, 3, 2, "INFO")
    assert cmd[0] == "gunicorn"
    assert "0.0.0.0:8000" in cmd
    assert cmd[cmd.index("--workers") + 1] == "3"
    assert cmd[cmd.index("--log-level") + 1] == "info"
    assert cmd[-1] == "web.app:app"
