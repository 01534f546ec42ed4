from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from qrtracker.api.deps import get_owner_scope
from qrtracker.db.session import get_db
from qrtracker.services import analytics_service

router = APIRouter()


@router.get("/overview")
def overview(db: Session = Depends(get_db), owner_id: int | None = Depends(get_owner_scope)):
    return {"data": analytics_service.get_overview(db, owner_id).model_dump()}


@router.get("/qr/{qr_id}")
def qr_analytics(qr_id: int, db: Session = Depends(get_db), owner_id: int | None = Depends(get_owner_scope)):
    return {"data": analytics_service.get_qr_analytics(db, qr_id, owner_id).model_dump()}


@router.get("/timeseries")
def time_series(
    days: int = Query(analytics_service.DEFAULT_SERIES_DAYS, ge=1, le=365),
    db: Session = Depends(get_db),
    owner_id: int | None = Depends(get_owner_scope),
):
    points = analytics_service.get_time_series(db, owner_id, days=days)
    return {"data": [point.model_dump() for point in points]}
