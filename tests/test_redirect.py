import http.client

import pytest

from qrtracker.db.models import QRCode, ScanEvent
from qrtracker.services import fingerprint_service, redirect_service

PUBLIC_IP = "203.0.113.7"
CHROME_DESKTOP_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


def _create(client, headers, **overrides):
    payload = {"title": "Menu", "target_url": "https://example.com"}
    payload.update(overrides)
    r = client.post("/api/qr", json=payload, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()["data"]


def test_scan_end_to_end(client, auth_headers):
    qr = _create(client, auth_headers)
    assert qr["background_color"] == "#FFFFFF" and qr["size"] == 256

    r = client.get(
        f"/r/{qr['code']}",
        headers={"User-Agent": CHROME_DESKTOP_UA, "X-Forwarded-For": PUBLIC_IP},
        follow_redirects=False,
    )
    assert r.status_code == 302
    assert r.headers["location"] == "https://example.com"

    overview = client.get("/api/analytics/overview", headers=auth_headers).json()["data"]
    assert overview["total_qr_codes"] == 1
    assert overview["total_scans"] == 1
    assert overview["scans_today"] == 1

    analytics = client.get(f"/api/analytics/qr/{qr['id']}", headers=auth_headers).json()["data"]
    assert analytics["total_scans"] == 1
    assert len(analytics["recent_scans"]) == 1
    scan = analytics["recent_scans"][0]
    assert scan["browser"] == "Chrome"
    assert scan["device_type"] == "Desktop"
    assert scan["ip_address"] == PUBLIC_IP
    assert len(analytics["time_series"]) == 1
    assert analytics["time_series"][0]["scans"] == 1


def test_time_series_without_scans_is_empty_list(client, auth_headers):
    _create(client, auth_headers)
    r = client.get("/api/analytics/timeseries?days=7", headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["data"] == []


@pytest.mark.parametrize("days", [0, 366, "abc"])
def test_time_series_rejects_bad_window(client, auth_headers, days):
    r = client.get(f"/api/analytics/timeseries?days={days}", headers=auth_headers)
    assert r.status_code == 422


def test_unknown_code_is_not_found(client):
    r = client.get("/r/00000000", follow_redirects=False)
    assert r.status_code == 404


def test_recording_failure_does_not_block_redirect(client, auth_headers, monkeypatch, db):
    qr = _create(client, auth_headers)
    monkeypatch.setattr(redirect_service, "record_scan", lambda *args, **kwargs: None)

    r = client.get(f"/r/{qr['code']}", follow_redirects=False)
    assert r.status_code == 302
    assert db.query(ScanEvent).count() == 0


def test_tag_manager_page_when_configured(client, auth_headers, monkeypatch, settings):
    monkeypatch.setattr(settings, "GTM_ID", "GTM-TEST1")
    qr = _create(client, auth_headers, target_url="https://example.com/menu?a=1&b=2")

    r = client.get(f"/r/{qr['code']}", headers={"User-Agent": CHROME_DESKTOP_UA}, follow_redirects=False)
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/html")
    body = r.text
    assert "GTM-TEST1" in body
    assert '"event": "qr_code_scan"' in body
    assert '"browser": "Chrome"' in body
    assert 'window.location.href = "https://example.com/menu?a=1&b=2"' in body

    overview = client.get("/api/analytics/overview", headers=auth_headers).json()["data"]
    assert overview["total_scans"] == 1


def test_owner_isolation_over_http(client, login_as):
    alice = login_as("alice")
    bob = login_as("bob")
    qr = _create(client, alice)

    for method, path in [
        ("get", f"/api/qr/{qr['id']}"),
        ("put", f"/api/qr/{qr['id']}"),
        ("delete", f"/api/qr/{qr['id']}"),
        ("get", f"/api/analytics/qr/{qr['id']}"),
    ]:
        kwargs = {"json": {"title": "mine now"}} if method == "put" else {}
        r = getattr(client, method)(path, headers=bob, **kwargs)
        assert r.status_code == 404, (method, path)

    assert client.get("/api/qr", headers=bob).json()["data"] == []
    assert client.get("/api/analytics/overview", headers=bob).json()["data"]["total_qr_codes"] == 0


def test_crud_and_delete_over_http(client, auth_headers):
    qr = _create(client, auth_headers)
    client.get(f"/r/{qr['code']}", follow_redirects=False)

    image = client.get(qr["image_url"])
    assert image.status_code == 200
    assert image.headers["content-type"] == "image/png"

    r = client.put(f"/api/qr/{qr['id']}", json={"target_url": "https://example.org"}, headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["data"]["code"] == qr["code"]
    assert r.json()["data"]["total_scans"] == 1

    r = client.get(f"/r/{qr['code']}", follow_redirects=False)
    assert r.headers["location"] == "https://example.org"

    assert client.delete(f"/api/qr/{qr['id']}", headers=auth_headers).status_code == 200
    assert client.get(f"/api/qr/{qr['id']}", headers=auth_headers).status_code == 404
    assert client.get(f"/r/{qr['code']}", follow_redirects=False).status_code == 404
    assert client.get("/api/analytics/overview", headers=auth_headers).json()["data"]["total_scans"] == 0


def test_create_rejects_bad_input(client, auth_headers):
    bad = [
        {"title": "x", "target_url": "javascript:alert(1)"},
        {"title": "x", "target_url": "https://example.com", "size": 10},
        {"title": "x", "target_url": "https://example.com", "background_color": "white; drop"},
        {"target_url": "https://example.com"},
    ]
    for payload in bad:
        assert client.post("/api/qr", json=payload, headers=auth_headers).status_code == 422
    assert client.get("/api/qr", headers=auth_headers).json()["data"] == []


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    assert "X-Request-ID" in r.headers


def test_malformed_geolocation_reply_still_redirects_and_records(client, auth_headers, monkeypatch, settings, db):
    def garbage(req, timeout):
        raise http.client.BadStatusLine("garbage-not-http")

    monkeypatch.setattr(settings, "IPGEOLOCATION_API_KEY", "test-key")
    monkeypatch.setattr(fingerprint_service.request, "urlopen", garbage)
    qr = _create(client, auth_headers)

    r = client.get(
        f"/r/{qr['code']}",
        headers={"User-Agent": CHROME_DESKTOP_UA, "X-Forwarded-For": "8.8.8.8"},
        follow_redirects=False,
    )
    assert r.status_code == 302
    assert r.headers["location"] == "https://example.com"

    scans = db.query(ScanEvent).all()
    assert len(scans) == 1
    assert scans[0].ip_address == "8.8.8.8"
    assert scans[0].country is None and scans[0].city is None
    assert scans[0].browser == "Chrome"


def test_oversized_forwarded_header_is_not_stored(client, auth_headers, db):
    qr = _create(client, auth_headers)

    r = client.get(f"/r/{qr['code']}", headers={"X-Forwarded-For": "x" * 500}, follow_redirects=False)
    assert r.status_code == 302

    scan = db.query(ScanEvent).one()
    # TestClient's peer is not an IP address either.
    assert scan.ip_address is None


def test_single_tenant_mode_shares_codes_over_http(client, login_as, monkeypatch, settings, db):
    monkeypatch.setattr(settings, "OWNER_SCOPING", False)
    alice = login_as("alice")
    bob = login_as("bob")

    qr = _create(client, alice)
    assert qr["owner_id"] is None
    assert db.query(QRCode).filter(QRCode.owner_id.is_(None)).count() == 1

    listed = client.get("/api/qr", headers=bob).json()["data"]
    assert [item["id"] for item in listed] == [qr["id"]]
    assert client.get(f"/api/qr/{qr['id']}", headers=bob).status_code == 200

    client.get(f"/r/{qr['code']}", follow_redirects=False)
    overview = client.get("/api/analytics/overview", headers=bob).json()["data"]
    assert overview["total_qr_codes"] == 1
    assert overview["total_scans"] == 1

    r = client.put(f"/api/qr/{qr['id']}", json={"title": "Shared"}, headers=bob)
    assert r.status_code == 200
    assert r.json()["data"]["title"] == "Shared"
