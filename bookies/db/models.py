from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum as SqlEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import relationship, Mapped, mapped_column

from bookies.db.session import Base
from sqlalchemy.sql import func


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ======================
# Enums
# ======================

class UserRole(str, Enum):
    ADMIN = "ADMIN"
    USER = "USER"


class BookStatus(str, Enum):
    AVAILABLE = "available"
    BORROWED = "borrowed"


class RequestType(str, Enum):
    BORROW = "BORROW"
    RETURN = "RETURN"


class RequestStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


# ======================
# User
# ======================

class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)

    role: Mapped[UserRole] = mapped_column(SqlEnum(UserRole), nullable=False, default=UserRole.USER)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    requests: Mapped[list["BookRequest"]] = relationship(
        "BookRequest",
        back_populates="user",
        foreign_keys="BookRequest.user_id",
    )


# ======================
# Book
# ======================

class Book(Base):
    __tablename__ = "books"
    __table_args__ = (
        # borrowed_by va junto con el estado "borrowed", nunca por separado
        CheckConstraint(
            "(status = 'BORROWED' AND borrowed_by IS NOT NULL)"
            " OR (status = 'AVAILABLE' AND borrowed_by IS NULL)",
            name="ck_books_borrowed_by",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    author: Mapped[str] = mapped_column(String(255), nullable=False)
    isbn: Mapped[str | None] = mapped_column(String(20), nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    publisher: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    cover_image: Mapped[str | None] = mapped_column(String(500), nullable=True)

    status: Mapped[BookStatus] = mapped_column(
        SqlEnum(BookStatus),
        nullable=False,
        default=BookStatus.AVAILABLE,
    )
    borrowed_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    borrowed_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    requests: Mapped[list["BookRequest"]] = relationship(
        "BookRequest",
        back_populates="book",
        cascade="all, delete-orphan",
    )


# ======================
# BookRequest
# ======================

class BookRequest(Base):
    __tablename__ = "book_requests"
    __table_args__ = (
        # Solo una solicitud PENDING por (libro, usuario, tipo)
        Index(
            "uq_book_requests_pending",
            "book_id",
            "user_id",
            "request_type",
            unique=True,
            postgresql_where=text("status = 'PENDING'"),
            sqlite_where=text("status = 'PENDING'"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    book_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("books.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    request_type: Mapped[RequestType] = mapped_column(SqlEnum(RequestType), nullable=False)

    status: Mapped[RequestStatus] = mapped_column(
        SqlEnum(RequestStatus),
        nullable=False,
        default=RequestStatus.PENDING,
    )

    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    processed_by_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Contador para control optimista de concurrencia
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    book: Mapped["Book"] = relationship("Book", back_populates="requests")
    user: Mapped["User"] = relationship(
        "User",
        back_populates="requests",
        foreign_keys=[user_id],
    )
    processed_by: Mapped[Optional["User"]] = relationship("User", foreign_keys=[processed_by_id])

    __mapper_args__ = {"version_id_col": version}
