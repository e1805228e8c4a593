from typing import Generator

from sqlalchemy.orm import Session

from bookies.db.session import SessionLocal


def get_db() -> Generator[Session, None, None]:
    """
    Sesión de base de datos por request.

    Si el endpoint falla, se descarta lo que haya quedado sin confirmar
    antes de cerrar la sesión.
    """
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
