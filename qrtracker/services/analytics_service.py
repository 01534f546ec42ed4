"""Owner-scoped scan aggregation.

All windows are relative to the current UTC time. A ``None`` owner means
owner scoping is disabled and every scan is counted.
"""
import logging
from datetime import datetime, time, timedelta
from typing import Callable

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session

from qrtracker.db.models import QRCode, ScanEvent
from qrtracker.schemas.analytics import AnalyticsOverview, QRAnalytics, ScanEventOut, TimeSeriesPoint
from qrtracker.services import qr_service

logger = logging.getLogger(__name__)

RECENT_SCANS_LIMIT = 10
QR_SERIES_DAYS = 30
DEFAULT_SERIES_DAYS = 30
WEEK_DAYS = 7


def _start_of_day(now: datetime) -> datetime:
    return datetime.combine(now.date(), time.min)


def window_starts(now: datetime) -> dict[str, datetime]:
    today = _start_of_day(now)
    return {
        "today": today,
        "week": today - timedelta(days=WEEK_DAYS),
        "month": today.replace(day=1),
    }


def _scan_query(db: Session, owner_id: int | None, *columns) -> Query:
    query = db.query(*columns).select_from(ScanEvent)
    if owner_id is not None:
        query = query.join(QRCode, QRCode.id == ScanEvent.qr_code_id).filter(QRCode.owner_id == owner_id)
    return query


def _safe_count(db: Session, label: str, build: Callable[[], Query]) -> int:
    try:
        return build().scalar() or 0
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Overview sub-query %s failed", label)
        return 0


def get_overview(db: Session, owner_id: int | None, now: datetime | None = None) -> AnalyticsOverview:
    starts = window_starts(now or datetime.utcnow())

    def scans_since(start: datetime | None) -> Callable[[], Query]:
        def build() -> Query:
            query = _scan_query(db, owner_id, func.count(ScanEvent.id))
            if start is not None:
                query = query.filter(ScanEvent.scanned_at >= start)
            return query

        return build

    return AnalyticsOverview(
        total_qr_codes=_safe_count(
            db, "total_qr_codes", lambda: qr_service.scoped(db.query(func.count(QRCode.id)), owner_id)
        ),
        total_scans=_safe_count(db, "total_scans", scans_since(None)),
        scans_today=_safe_count(db, "scans_today", scans_since(starts["today"])),
        scans_this_week=_safe_count(db, "scans_this_week", scans_since(starts["week"])),
        scans_this_month=_safe_count(db, "scans_this_month", scans_since(starts["month"])),
    )


def get_time_series(
    db: Session,
    owner_id: int | None,
    days: int = DEFAULT_SERIES_DAYS,
    qr_code_id: int | None = None,
    now: datetime | None = None,
) -> list[TimeSeriesPoint]:
    """Day buckets of scan counts over the trailing ``days`` days, oldest first.

    Days without scans are left out of the result.
    """
    start = _start_of_day(now or datetime.utcnow()) - timedelta(days=days)
    day = func.date(ScanEvent.scanned_at)

    query = _scan_query(db, owner_id, day.label("day"), func.count(ScanEvent.id).label("scans")).filter(
        ScanEvent.scanned_at >= start
    )
    if qr_code_id is not None:
        query = query.filter(ScanEvent.qr_code_id == qr_code_id)

    rows = query.group_by(day).order_by(day).all()
    # SQLite hands back ISO strings, PostgreSQL hands back dates.
    return [TimeSeriesPoint(date=str(row.day), scans=row.scans) for row in rows]


def get_qr_analytics(db: Session, qr_id: int, owner_id: int | None) -> QRAnalytics:
    qr = qr_service.get_owned_qr(db, qr_id, owner_id)

    total_scans = qr_service.count_scans(db, qr.id)
    recent = (
        db.query(ScanEvent)
        .filter(ScanEvent.qr_code_id == qr.id)
        .order_by(ScanEvent.scanned_at.desc(), ScanEvent.id.desc())
        .limit(RECENT_SCANS_LIMIT)
        .all()
    )

    return QRAnalytics(
        qr_code=qr_service.serialize_qr(qr, total_scans),
        total_scans=total_scans,
        recent_scans=[ScanEventOut.model_validate(scan) for scan in recent],
        time_series=get_time_series(db, owner_id, days=QR_SERIES_DAYS, qr_code_id=qr.id),
    )
