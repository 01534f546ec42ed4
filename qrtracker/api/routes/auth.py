from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from qrtracker.api.deps import get_current_user
from qrtracker.db.models import User
from qrtracker.db.session import get_db
from qrtracker.schemas.auth import LoginRequest, SignupRequest, UserOut
from qrtracker.services import auth_service

router = APIRouter()


@router.post("/signup", status_code=status.HTTP_201_CREATED)
def signup(payload: SignupRequest, db: Session = Depends(get_db)):
    data = auth_service.signup(db=db, username=payload.username, password=payload.password)
    return {"data": data.model_dump()}


@router.post("/login")
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    data = auth_service.login(db=db, username=payload.username, password=payload.password)
    return {"data": data.model_dump()}


@router.get("/me")
def me(user: User = Depends(get_current_user)):
    return {"data": UserOut.model_validate(user).model_dump()}
