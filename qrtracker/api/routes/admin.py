from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from qrtracker.api.deps import require_roles
from qrtracker.db.models import User
from qrtracker.db.session import get_db
from qrtracker.services.admin_service import get_admin_overview, list_users_with_usage

router = APIRouter()


@router.get("/overview")
def admin_overview(
    db: Session = Depends(get_db),
    _: User = Depends(require_roles("admin")),
):
    return {"data": get_admin_overview(db)}


@router.get("/users")
def admin_users(
    db: Session = Depends(get_db),
    _: User = Depends(require_roles("admin")),
):
    return {"data": list_users_with_usage(db)}
