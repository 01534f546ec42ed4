import logging
from datetime import datetime

from sqlalchemy import DateTime, exists, insert, literal, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from qrtracker.core.exceptions import AppException
from qrtracker.core.security import create_access_token, hash_password, verify_password
from qrtracker.db.models import User, UserRole
from qrtracker.schemas.auth import LoginResponse, UserOut

logger = logging.getLogger(__name__)


def signup(db: Session, username: str, password: str) -> UserOut:
    username = username.strip()
    existing = db.query(User).filter(User.username == username).first()
    if existing:
        raise AppException("Username is already taken", status_code=409)

    user = User(
        username=username,
        password_hash=hash_password(password),
        role=UserRole.user,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        # Lost a race with a concurrent signup for the same name.
        db.rollback()
        raise AppException("Username is already taken", status_code=409) from exc
    db.refresh(user)
    logger.info("Created user id=%s username=%s", user.id, user.username)
    return UserOut.model_validate(user)


def login(db: Session, username: str, password: str) -> LoginResponse:
    user = db.query(User).filter(User.username == username.strip()).first()
    if not user or not verify_password(password, user.password_hash):
        raise AppException("Invalid credentials", status_code=401)

    token = create_access_token(user.id, user.username, user.role.value)
    return LoginResponse(token=token, user=UserOut.model_validate(user))


def seed_admin(db: Session, username: str, password: str) -> bool:
    """Insert an admin account unless ``username`` exists; return True if inserted.

    Runs as one ``INSERT ... SELECT ... WHERE NOT EXISTS`` statement so that
    concurrent workers starting together cannot both insert.
    """
    users = User.__table__
    row = select(
        literal(username),
        literal(hash_password(password)),
        literal(UserRole.admin, type_=users.c.role.type),
        literal(datetime.utcnow(), type_=DateTime),
    ).where(~exists().where(users.c.username == username))
    stmt = insert(users).from_select(["username", "password_hash", "role", "created_at"], row)

    try:
        result = db.execute(stmt)
        db.commit()
    except IntegrityError:
        db.rollback()
        return False

    inserted = (result.rowcount or 0) > 0
    if inserted:
        logger.info("Seeded admin account %s", username)
    return inserted
