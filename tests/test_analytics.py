from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from qrtracker.core.exceptions import AppException
from qrtracker.db.models import QRCode, ScanEvent, User
from qrtracker.services import analytics_service
from qrtracker.services.analytics_service import get_overview, get_qr_analytics, get_time_series, window_starts


def _user(db, username):
    user = User(username=username, password_hash="x")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def _qr(db, owner, code):
    qr = QRCode(code=code, title=code, target_url="https://example.com", owner_id=owner.id if owner else None)
    db.add(qr)
    db.commit()
    db.refresh(qr)
    return qr


def _scan(db, qr, when, browser="Chrome"):
    db.add(ScanEvent(qr_code_id=qr.id, scanned_at=when, browser=browser, device_type="Desktop"))
    db.commit()


def test_window_starts():
    now = datetime(2024, 3, 15, 13, 45)
    starts = window_starts(now)
    assert starts["today"] == datetime(2024, 3, 15)
    assert starts["week"] == datetime(2024, 3, 8)
    assert starts["month"] == datetime(2024, 3, 1)


def test_overview_counts_windows_for_owner_only(db):
    now = datetime(2024, 3, 15, 12, 0)
    alice, bob = _user(db, "alice"), _user(db, "bob")
    menu = _qr(db, alice, "aaaa0001")
    _qr(db, alice, "aaaa0002")
    other = _qr(db, bob, "bbbb0001")

    _scan(db, menu, now - timedelta(hours=1))       # today
    _scan(db, menu, now - timedelta(days=3))        # this week, this month
    _scan(db, menu, now - timedelta(days=10))       # this month only
    _scan(db, menu, now - timedelta(days=40))       # lifetime only
    _scan(db, other, now - timedelta(hours=2))      # bob's

    overview = get_overview(db, alice.id, now=now)
    assert overview.model_dump() == {
        "total_qr_codes": 2,
        "total_scans": 4,
        "scans_today": 1,
        "scans_this_week": 2,
        "scans_this_month": 3,
    }

    unscoped = get_overview(db, None, now=now)
    assert unscoped.total_qr_codes == 3
    assert unscoped.total_scans == 5
    assert unscoped.scans_today == 2


def test_overview_failed_subquery_reports_zero(db, monkeypatch):
    alice = _user(db, "alice")
    menu = _qr(db, alice, "aaaa0001")
    _scan(db, menu, datetime.utcnow())

    real_scan_query = analytics_service._scan_query

    def flaky_scan_query(session, owner_id, *columns):
        query = real_scan_query(session, owner_id, *columns)

        class Exploding:
            def filter(self, *args):
                raise OperationalError("SELECT", {}, Exception("boom"))

            def scalar(self):
                return query.scalar()

        return Exploding()

    monkeypatch.setattr(analytics_service, "_scan_query", flaky_scan_query)
    overview = get_overview(db, alice.id)

    assert overview.total_qr_codes == 1
    assert overview.total_scans == 1
    assert overview.scans_today == 0
    assert overview.scans_this_week == 0
    assert overview.scans_this_month == 0


def test_time_series_orders_days_and_skips_empty_days(db):
    now = datetime(2024, 3, 15, 12, 0)
    alice = _user(db, "alice")
    menu = _qr(db, alice, "aaaa0001")
    _scan(db, menu, datetime(2024, 3, 14, 9, 0))
    _scan(db, menu, datetime(2024, 3, 10, 23, 59))
    _scan(db, menu, datetime(2024, 3, 14, 18, 30))
    _scan(db, menu, datetime(2024, 1, 1, 8, 0))

    series = get_time_series(db, alice.id, days=30, now=now)
    assert [p.model_dump() for p in series] == [
        {"date": "2024-03-10", "scans": 1},
        {"date": "2024-03-14", "scans": 2},
    ]

    assert get_time_series(db, alice.id, days=2, now=now)[0].date == "2024-03-14"


def test_time_series_empty_window_is_empty_list(db):
    alice = _user(db, "alice")
    menu = _qr(db, alice, "aaaa0001")
    _scan(db, menu, datetime.utcnow() - timedelta(days=60))

    assert get_time_series(db, alice.id, days=7) == []


def test_qr_analytics_recent_scans_and_series(db):
    alice = _user(db, "alice")
    menu = _qr(db, alice, "aaaa0001")
    now = datetime.utcnow()
    for minutes in range(12):
        _scan(db, menu, now - timedelta(minutes=minutes + 1))
    _scan(db, menu, now - timedelta(days=45))

    result = get_qr_analytics(db, menu.id, alice.id)

    assert result.total_scans == 13
    assert result.qr_code.code == "aaaa0001"
    assert result.qr_code.total_scans == 13
    assert len(result.recent_scans) == 10
    stamps = [scan.scanned_at for scan in result.recent_scans]
    assert stamps == sorted(stamps, reverse=True)
    assert sum(point.scans for point in result.time_series) == 12
    dates = [point.date for point in result.time_series]
    assert dates == sorted(dates)


def test_qr_analytics_hides_other_owners_codes(db):
    alice, bob = _user(db, "alice"), _user(db, "bob")
    menu = _qr(db, alice, "aaaa0001")

    with pytest.raises(AppException) as exc:
        get_qr_analytics(db, menu.id, bob.id)
    assert exc.value.status_code == 404
