from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from qrtracker.db.session import get_db
from qrtracker.services.redirect_service import follow_code

router = APIRouter()


@router.get("/r/{code}")
def redirect_code(code: str, request: Request, db: Session = Depends(get_db)):
    peer = request.client.host if request.client else None
    return follow_code(db, code, request.headers, peer)
