from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from qrtracker.api.deps import get_owner_scope
from qrtracker.db.session import get_db
from qrtracker.schemas.qr import QRCreate, QRUpdate
from qrtracker.services import qr_service

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
def create_qr(
    payload: QRCreate,
    db: Session = Depends(get_db),
    owner_id: int | None = Depends(get_owner_scope),
):
    return {"data": qr_service.create_qr(db, payload, owner_id).model_dump()}


@router.get("")
def list_qr(db: Session = Depends(get_db), owner_id: int | None = Depends(get_owner_scope)):
    return {"data": [item.model_dump() for item in qr_service.list_qr(db, owner_id)]}


@router.get("/{qr_id}")
def get_qr(qr_id: int, db: Session = Depends(get_db), owner_id: int | None = Depends(get_owner_scope)):
    return {"data": qr_service.get_qr(db, qr_id, owner_id).model_dump()}


@router.put("/{qr_id}")
def update_qr(
    qr_id: int,
    payload: QRUpdate,
    db: Session = Depends(get_db),
    owner_id: int | None = Depends(get_owner_scope),
):
    return {"data": qr_service.update_qr(db, qr_id, payload, owner_id).model_dump()}


@router.delete("/{qr_id}")
def delete_qr(qr_id: int, db: Session = Depends(get_db), owner_id: int | None = Depends(get_owner_scope)):
    qr_service.delete_qr(db, qr_id, owner_id)
    return {"data": {"id": qr_id, "status": "deleted"}}
