from sqlalchemy import func
from sqlalchemy.orm import Session

from qrtracker.db.models import QRCode, ScanEvent, User, UserRole
from qrtracker.services.analytics_service import get_overview


def list_users_with_usage(db: Session) -> list[dict]:
    qr_counts = dict(db.query(QRCode.owner_id, func.count(QRCode.id)).group_by(QRCode.owner_id).all())
    scan_counts = dict(
        db.query(QRCode.owner_id, func.count(ScanEvent.id))
        .join(ScanEvent, ScanEvent.qr_code_id == QRCode.id)
        .group_by(QRCode.owner_id)
        .all()
    )

    users = db.query(User).order_by(User.created_at.desc(), User.id.desc()).all()
    return [
        {
            "id": user.id,
            "username": user.username,
            "role": user.role.value,
            "created_at": user.created_at.isoformat() if user.created_at else None,
            "qr_codes": int(qr_counts.get(user.id, 0)),
            "scans": int(scan_counts.get(user.id, 0)),
        }
        for user in users
    ]


def get_admin_overview(db: Session) -> dict:
    total_users = db.query(func.count(User.id)).scalar() or 0
    admins = db.query(func.count(User.id)).filter(User.role == UserRole.admin).scalar() or 0
    ownerless = db.query(func.count(QRCode.id)).filter(QRCode.owner_id.is_(None)).scalar() or 0

    return {
        "users": {"total": total_users, "admins": admins},
        "ownerless_qr_codes": ownerless,
        "scans": get_overview(db, owner_id=None).model_dump(),
    }
