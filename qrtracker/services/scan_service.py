import logging
from datetime import datetime

from sqlalchemy.orm import Session

from qrtracker.db.models import ScanEvent
from qrtracker.services.fingerprint_service import ClientFingerprint

logger = logging.getLogger(__name__)


def record_scan(db: Session, qr_code_id: int, fingerprint: ClientFingerprint) -> ScanEvent | None:
    """Persist one scan event; a failed write is logged and reported as ``None``."""
    scan = ScanEvent(
        qr_code_id=qr_code_id,
        ip_address=fingerprint.ip_address,
        user_agent=fingerprint.user_agent,
        country=fingerprint.country,
        city=fingerprint.city,
        browser=fingerprint.browser,
        device_type=fingerprint.device_type,
        scanned_at=datetime.utcnow(),
    )
    try:
        db.add(scan)
        db.commit()
        db.refresh(scan)
    except Exception:
        db.rollback()
        logger.exception("Could not record scan for qr_code_id=%s ip=%s", qr_code_id, fingerprint.ip_address)
        return None
    return scan
