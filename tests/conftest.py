#configuracion de los test
import os
import sys
import tempfile
import uuid
from pathlib import Path
from typing import Generator

import pytest
from fastapi.testclient import TestClient

# ======================================================
# Ajuste del sys.path para que 'bookies/' sea importable
# ======================================================
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

# ======================================================
# Base de datos temporal (antes de importar la app)
# ======================================================
_TMP_DIR = tempfile.mkdtemp(prefix="bookies-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP_DIR}/bookies_test.db"
os.environ.setdefault("JWT_SECRET", "test-secret-not-for-production")
os.environ["DEFAULT_ADMIN_EMAIL"] = "admin@bookies.com"
os.environ["DEFAULT_ADMIN_PASSWORD"] = "admin123"
os.environ["DEFAULT_USER_EMAIL"] = "user@bookies.com"
os.environ["DEFAULT_USER_PASSWORD"] = "user123"

# ======================================================
# Imports de la aplicación
# ======================================================
from bookies.main import app
from bookies.db.session import SessionLocal, init_db
from bookies.db.models import Book, BookRequest, BookStatus, User, UserRole, utcnow
from bookies.core.security import hash_password


def _login(client: TestClient, email: str, password: str) -> str:
    resp = client.post(
        "/api/v1/auth/login",
        data={"username": email, "password": password},
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["access_token"]


# ======================================================
# DB SESSION FIXTURE
# ======================================================
@pytest.fixture
def db_session() -> Generator:
    """
    Provee una sesión limpia de DB para cada test.
    """
    init_db()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


# ======================================================
# CLIENT FIXTURE
# ======================================================
@pytest.fixture(scope="session")
def client():
    """
    TestClient de FastAPI (con contexto, corre el startup).
    """
    with TestClient(app) as c:
        yield c


# ======================================================
# ADMIN FIXTURES
# ======================================================
@pytest.fixture(scope="session")
def admin_credentials():
    return {"email": "admin@bookies.com", "password": "admin123"}


@pytest.fixture(scope="session")
def admin_token(client: TestClient, admin_credentials):
    # El startup ya creó la cuenta admin por defecto
    return _login(client, admin_credentials["email"], admin_credentials["password"])


@pytest.fixture
def admin_headers(admin_token):
    return {"Authorization": f"Bearer {admin_token}"}


# ======================================================
# USER FIXTURES
# ======================================================
@pytest.fixture(scope="session")
def user_credentials():
    return {"email": "user@bookies.com", "password": "user123"}


@pytest.fixture(scope="session")
def user_token(client: TestClient, user_credentials):
    return _login(client, user_credentials["email"], user_credentials["password"])


@pytest.fixture
def user_headers(user_token):
    return {"Authorization": f"Bearer {user_token}"}


@pytest.fixture
def other_user(client: TestClient):
    """
    Crea (si no existe) un segundo USER y devuelve email + headers.
    """
    email = "other_reader@example.com"
    password = "reader123"

    with SessionLocal() as db:
        user = db.query(User).filter(User.email == email).first()
        if not user:
            db.add(
                User(
                    email=email,
                    name="Other Reader",
                    hashed_password=hash_password(password),
                    role=UserRole.USER,
                )
            )
            db.commit()

    token = _login(client, email, password)
    return {"email": email, "headers": {"Authorization": f"Bearer {token}"}}


# ======================================================
# LIBROS Y SOLICITUDES
# ======================================================
@pytest.fixture
def make_book():
    """
    Crea libros directo en la BD (no hay endpoint de catálogo).
    Acepta status/borrowed_by para arrancar con un libro prestado.
    """
    def _make_book(title: str = "Libro de Pruebas", author: str = "Autor Test", **fields) -> int:
        with SessionLocal() as db:
            book = Book(
                title=title,
                author=author,
                isbn=fields.pop("isbn", f"ISBN-{uuid.uuid4().hex[:8]}"),
                category=fields.pop("category", "Test"),
                **fields,
            )
            db.add(book)
            db.commit()
            return book.id

    return _make_book


@pytest.fixture
def borrowed_book(make_book, user_credentials):
    """Libro que ya está prestado al usuario por defecto."""
    return make_book(
        title="Libro Prestado",
        status=BookStatus.BORROWED,
        borrowed_by=user_credentials["email"],
        borrowed_date=utcnow(),
    )


@pytest.fixture
def fetch_book():
    """Lee el estado actual de un libro con una sesión nueva."""
    def _fetch(book_id: int) -> Book:
        with SessionLocal() as db:
            book = db.query(Book).filter(Book.id == book_id).first()
            db.expunge(book)
            return book

    return _fetch


def clear_requests():
    """
    Limpia todas las solicitudes para que cada test empiece sin
    solicitudes PENDING de otros tests.
    """
    with SessionLocal() as db:
        db.query(BookRequest).delete()
        db.commit()


@pytest.fixture
def clean_requests():
    clear_requests()
    yield
