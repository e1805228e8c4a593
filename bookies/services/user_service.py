from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from bookies.core.errors import BadRequestError, ConflictError, NotFoundError, UnauthorizedError
from bookies.core.security import hash_password, verify_password
from bookies.db.models import User, UserRole


def find_user_by_email(db: Session, email: str) -> Optional[User]:
    """Busca primero por email exacto y, si no hay, sin distinguir mayúsculas."""
    user = db.query(User).filter(User.email == email).first()
    if user is None:
        user = db.query(User).filter(func.lower(User.email) == email.lower()).first()
    return user


def register_user(db: Session, name: str, email: str, password: str) -> User:
    # El rol nunca viene del cliente: el registro siempre crea USER
    if find_user_by_email(db, email) is not None:
        raise ConflictError("An account with this email already exists")

    user = User(
        name=name,
        email=email,
        hashed_password=hash_password(password),
        role=UserRole.USER,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("An account with this email already exists")

    db.refresh(user)
    return user


def authenticate(db: Session, email: str, password: str) -> Optional[User]:
    user = find_user_by_email(db, email)
    if user is None or not verify_password(password, user.hashed_password):
        return None
    return user


def change_password(db: Session, user: User, current_password: str, new_password: str) -> None:
    if not verify_password(current_password, user.hashed_password):
        raise UnauthorizedError("Incorrect current password")

    if verify_password(new_password, user.hashed_password):
        raise BadRequestError("New password must be different from current password")

    user.hashed_password = hash_password(new_password)
    db.commit()


def get_user_or_404(db: Session, email: str) -> User:
    user = find_user_by_email(db, email)
    if user is None:
        raise NotFoundError("User not found")
    return user
