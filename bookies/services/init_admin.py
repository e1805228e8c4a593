from sqlalchemy.orm import Session

from bookies.core.config import settings
from bookies.core.logging import get_logger
from bookies.core.security import hash_password
from bookies.db.models import User, UserRole

logger = get_logger("services.provisioning")


def _ensure_account(db: Session, email: str, name: str, password: str, role: UserRole) -> bool:
    user = db.query(User).filter(User.email == email).first()
    if user:
        return False

    db.add(
        User(
            email=email,
            name=name,
            hashed_password=hash_password(password),  # cámbialo luego
            role=role,
        )
    )
    return True


def provision_default_accounts(db: Session) -> int:
    """
    Crea la cuenta admin y la de usuario por defecto si no existen.
    Es idempotente: se puede llamar en cada arranque.
    Devuelve cuántas cuentas se crearon.
    """
    accounts = [
        (settings.DEFAULT_ADMIN_EMAIL, settings.DEFAULT_ADMIN_NAME, settings.DEFAULT_ADMIN_PASSWORD, UserRole.ADMIN),
        (settings.DEFAULT_USER_EMAIL, settings.DEFAULT_USER_NAME, settings.DEFAULT_USER_PASSWORD, UserRole.USER),
    ]

    created = 0
    for email, name, password, role in accounts:
        if _ensure_account(db, email, name, password, role):
            created += 1
            logger.info(
                "default_account_created",
                extra={"operation": "provision", "resource": "user", "email": email, "role": role.value},
            )

    db.commit()
    return created
