import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session

from qrtracker.core.config import get_settings
from qrtracker.core.exceptions import AppException
from qrtracker.db.models import QRCode, ScanEvent
from qrtracker.db.models.qr_code import DEFAULT_BACKGROUND_COLOR, DEFAULT_FOREGROUND_COLOR, DEFAULT_SIZE
from qrtracker.schemas.qr import QRCodeOut, QRCreate, QRUpdate
from qrtracker.services.code_service import generate_code
from qrtracker.services.render_service import image_url, redirect_url, remove_qr_image, render_qr_image

settings = get_settings()
logger = logging.getLogger(__name__)

STYLE_FIELDS = ("background_color", "foreground_color", "size")


def scoped(query: Query, owner_id: int | None) -> Query:
    """Restrict a QRCode query to ``owner_id``; ``None`` means scoping is off."""
    if owner_id is None:
        return query
    return query.filter(QRCode.owner_id == owner_id)


def serialize_qr(qr: QRCode, total_scans: int = 0) -> QRCodeOut:
    return QRCodeOut(
        id=qr.id,
        code=qr.code,
        title=qr.title,
        target_url=qr.target_url,
        background_color=qr.background_color,
        foreground_color=qr.foreground_color,
        size=qr.size,
        logo_path=qr.logo_path,
        owner_id=qr.owner_id,
        image_url=image_url(qr.code),
        redirect_url=redirect_url(qr.code),
        created_at=qr.created_at,
        updated_at=qr.updated_at,
        total_scans=total_scans,
    )


def count_scans(db: Session, qr_code_id: int) -> int:
    return db.query(func.count(ScanEvent.id)).filter(ScanEvent.qr_code_id == qr_code_id).scalar() or 0


def _scan_counts(db: Session, qr_ids: list[int]) -> dict[int, int]:
    if not qr_ids:
        return {}
    rows = (
        db.query(ScanEvent.qr_code_id, func.count(ScanEvent.id))
        .filter(ScanEvent.qr_code_id.in_(qr_ids))
        .group_by(ScanEvent.qr_code_id)
        .all()
    )
    return {qr_code_id: count for qr_code_id, count in rows}


def create_qr(db: Session, payload: QRCreate, owner_id: int | None) -> QRCodeOut:
    background = payload.background_color or DEFAULT_BACKGROUND_COLOR
    foreground = payload.foreground_color or DEFAULT_FOREGROUND_COLOR
    size = payload.size or DEFAULT_SIZE

    attempts = max(1, settings.CODE_GENERATION_ATTEMPTS)
    for attempt in range(1, attempts + 1):
        qr = QRCode(
            code=generate_code(),
            owner_id=owner_id,
            title=payload.title,
            target_url=payload.target_url,
            background_color=background,
            foreground_color=foreground,
            size=size,
        )
        db.add(qr)
        try:
            db.flush()
        except IntegrityError:
            db.rollback()
            logger.warning("Generated code %s is already taken (attempt %s/%s)", qr.code, attempt, attempts)
            continue

        try:
            render_qr_image(qr.code, size, foreground, background)
        except Exception as exc:
            db.rollback()
            logger.exception("Could not render QR image for code=%s", qr.code)
            raise AppException("Could not render QR image", status_code=500) from exc

        try:
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            remove_qr_image(qr.code)
            logger.exception("Could not store QR code %s", qr.code)
            raise AppException("Could not create QR code", status_code=500) from exc

        db.refresh(qr)
        logger.info("Created QR code id=%s code=%s owner_id=%s", qr.id, qr.code, owner_id)
        return serialize_qr(qr, 0)

    raise AppException("Could not allocate a unique QR code", status_code=500)


def list_qr(db: Session, owner_id: int | None) -> list[QRCodeOut]:
    rows = scoped(db.query(QRCode), owner_id).order_by(QRCode.created_at.desc(), QRCode.id.desc()).all()
    counts = _scan_counts(db, [row.id for row in rows])
    return [serialize_qr(row, counts.get(row.id, 0)) for row in rows]


def get_owned_qr(db: Session, qr_id: int, owner_id: int | None) -> QRCode:
    # Someone else's code and a missing code look the same to the caller.
    qr = scoped(db.query(QRCode), owner_id).filter(QRCode.id == qr_id).first()
    if not qr:
        raise AppException("QR code not found", status_code=404)
    return qr


def get_qr(db: Session, qr_id: int, owner_id: int | None) -> QRCodeOut:
    qr = get_owned_qr(db, qr_id, owner_id)
    return serialize_qr(qr, count_scans(db, qr.id))


def get_qr_by_code(db: Session, code: str) -> QRCode | None:
    return db.query(QRCode).filter(QRCode.code == code).first()


def update_qr(db: Session, qr_id: int, payload: QRUpdate, owner_id: int | None) -> QRCodeOut:
    qr = get_owned_qr(db, qr_id, owner_id)
    changes = {key: value for key, value in payload.model_dump(exclude_unset=True).items() if value is not None}

    style_changed = False
    for key, value in changes.items():
        if key in STYLE_FIELDS and getattr(qr, key) != value:
            style_changed = True
        setattr(qr, key, value)

    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Could not update QR code id=%s", qr_id)
        raise AppException("Could not update QR code", status_code=500) from exc
    db.refresh(qr)

    if style_changed:
        try:
            render_qr_image(qr.code, qr.size, qr.foreground_color, qr.background_color)
        except Exception:
            logger.warning("Could not re-render QR image for code=%s", qr.code, exc_info=True)

    return serialize_qr(qr, count_scans(db, qr.id))


def delete_qr(db: Session, qr_id: int, owner_id: int | None) -> None:
    qr = get_owned_qr(db, qr_id, owner_id)
    code = qr.code
    try:
        db.delete(qr)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Could not delete QR code id=%s", qr_id)
        raise AppException("Could not delete QR code", status_code=500) from exc

    remove_qr_image(code)
    logger.info("Deleted QR code id=%s code=%s", qr_id, code)
