from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from bookies.core.config import settings

# SQLite necesita compartir la conexión entre hilos del servidor
connect_args = {}
if settings.DATABASE_URL.startswith("sqlite"):
    connect_args["check_same_thread"] = False

# Engine: conexión a la base de datos (PostgreSQL en producción)
engine = create_engine(
    settings.DATABASE_URL,
    future=True,
    pool_pre_ping=True,
    connect_args=connect_args,
)

# SessionLocal: lo que inyectaremos en los endpoints
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    future=True,
)

# Base: clase base para los modelos SQLAlchemy
Base = declarative_base()


def init_db() -> None:
    """Crea las tablas que falten. Los modelos deben estar importados."""
    from bookies.db import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
