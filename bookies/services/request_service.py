from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from bookies.core.errors import BadRequestError, ConflictError, InternalError, NotFoundError
from bookies.core.logging import get_logger
from bookies.db.models import (
    Book,
    BookRequest,
    BookStatus,
    RequestStatus,
    RequestType,
    utcnow,
)
from bookies.services.user_service import find_user_by_email, get_user_or_404

logger = get_logger("services.requests")

ALREADY_PROCESSED = "Request has already been processed"


class Decision(str, Enum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"


def _duplicate_message(request_type: RequestType) -> str:
    return f"You already have a pending {request_type.value.lower()} request for this book"


def _coerce_request_type(request_type) -> RequestType:
    try:
        return RequestType(request_type)
    except ValueError:
        raise BadRequestError(f"Invalid request type: {request_type}")


# ======================
# Consultas
# ======================

def find_by_book_and_status(db: Session, book_id: int, status: RequestStatus) -> list[BookRequest]:
    return (
        db.query(BookRequest)
        .filter(BookRequest.book_id == book_id, BookRequest.status == status)
        .all()
    )


def get_request(db: Session, request_id: int) -> BookRequest:
    request = db.query(BookRequest).filter(BookRequest.id == request_id).first()
    if request is None:
        raise NotFoundError("Request not found")
    return request


def list_pending(db: Session) -> list[BookRequest]:
    return (
        db.query(BookRequest)
        .filter(BookRequest.status == RequestStatus.PENDING)
        .order_by(BookRequest.requested_at.desc())
        .all()
    )


def list_by_user(db: Session, email: str) -> list[BookRequest]:
    user = get_user_or_404(db, email)
    return (
        db.query(BookRequest)
        .filter(BookRequest.user_id == user.id)
        .order_by(BookRequest.requested_at.desc())
        .all()
    )


def list_requests(
    db: Session,
    status: Optional[RequestStatus] = None,
    request_type: Optional[RequestType] = None,
    skip: int = 0,
    limit: int = 100,
) -> list[BookRequest]:
    query = db.query(BookRequest)

    if status is not None:
        query = query.filter(BookRequest.status == status)
    if request_type is not None:
        query = query.filter(BookRequest.request_type == request_type)

    return (
        query.order_by(BookRequest.requested_at.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def request_counts_by_status(db: Session) -> dict[RequestStatus, int]:
    rows = (
        db.query(BookRequest.status, func.count(BookRequest.id))
        .group_by(BookRequest.status)
        .all()
    )
    counts = {status: 0 for status in RequestStatus}
    for status, count in rows:
        counts[status] = count
    return counts


# ======================
# Flujo de solicitudes
# ======================

def create_request(
    db: Session,
    book_id: int,
    user_email: str,
    request_type: RequestType,
    notes: Optional[str] = None,
) -> BookRequest:
    """
    Crea una solicitud PENDING de préstamo o devolución.

    - 404 si el libro o el usuario no existen.
    - 409 si el usuario ya tiene una solicitud PENDING del mismo tipo
      para ese libro.
    """
    request_type = _coerce_request_type(request_type)

    book = db.query(Book).filter(Book.id == book_id).first()
    if book is None:
        raise NotFoundError(f"Book not found with ID: {book_id}")

    user = find_user_by_email(db, user_email)
    if user is None:
        raise NotFoundError(f"User not found with email: {user_email}")

    for existing in find_by_book_and_status(db, book.id, RequestStatus.PENDING):
        if existing.user_id == user.id and existing.request_type == request_type:
            raise ConflictError(_duplicate_message(request_type))

    request = BookRequest(
        book=book,
        user=user,
        request_type=request_type,
        status=RequestStatus.PENDING,
        requested_at=utcnow(),
        notes=notes,
    )
    db.add(request)

    try:
        db.commit()
    except IntegrityError:
        # Otra transacción creó la misma solicitud entre la revisión y el insert;
        # el índice único parcial lo detecta
        db.rollback()
        logger.warning(
            "duplicate_pending_request",
            extra={
                "operation": "request_create",
                "resource": "book_request",
                "book_id": book_id,
                "request_type": request_type.value,
            },
        )
        raise ConflictError(_duplicate_message(request_type))
    except SQLAlchemyError as exc:
        db.rollback()
        raise InternalError("Unexpected error occurred while saving the request") from exc

    db.refresh(request)
    return request


def _apply_to_book(book: Book, request: BookRequest, now: datetime) -> None:
    # Efectos de una aprobación sobre el libro
    if request.request_type == RequestType.BORROW:
        book.status = BookStatus.BORROWED
        book.borrowed_by = request.user.email
        book.borrowed_date = now
    elif request.request_type == RequestType.RETURN:
        book.status = BookStatus.AVAILABLE
        book.borrowed_by = None
        book.borrowed_date = None
    else:
        raise InternalError(f"Unsupported request type: {request.request_type}")


def resolve_request(
    db: Session,
    request_id: int,
    decision: Decision,
    admin_email: Optional[str] = None,
    notes: Optional[str] = None,
) -> tuple[BookRequest, Optional[Book]]:
    """
    Aprueba o rechaza una solicitud PENDING.

    La solicitud y el libro se guardan en la misma transacción. Si otra
    transacción resolvió la solicitud antes (fila bloqueada o versión
    distinta), se responde 400 "already processed" y no se escribe nada.

    Devuelve (solicitud, libro); el libro es None en un rechazo.
    """
    try:
        decision = Decision(decision)
    except ValueError:
        raise BadRequestError(f"Unknown decision: {decision}")

    request = (
        db.query(BookRequest)
        .filter(BookRequest.id == request_id)
        .populate_existing()
        .with_for_update()
        .first()
    )
    if request is None:
        raise NotFoundError("Request not found")

    if request.status != RequestStatus.PENDING:
        db.rollback()  # libera el lock de la fila
        raise BadRequestError(ALREADY_PROCESSED)

    # El admin es opcional: si no existe el email, processed_by queda vacío
    admin = find_user_by_email(db, admin_email) if admin_email else None

    now = utcnow()
    book: Optional[Book] = None

    if decision == Decision.APPROVE:
        request.status = RequestStatus.APPROVED
        book = request.book
        _apply_to_book(book, request, now)
    elif decision == Decision.REJECT:
        request.status = RequestStatus.REJECTED
        if notes is not None:
            request.notes = notes
    else:
        raise BadRequestError(f"Unknown decision: {decision}")

    request.processed_at = now
    request.processed_by = admin

    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        logger.warning(
            "concurrent_resolution",
            extra={
                "operation": "request_resolve",
                "resource": "book_request",
                "book_request_id": request_id,
                "decision": decision.value,
            },
        )
        raise BadRequestError(ALREADY_PROCESSED)
    except SQLAlchemyError as exc:
        db.rollback()
        raise InternalError("Unexpected error occurred while processing the request") from exc

    db.refresh(request)
    if book is not None:
        db.refresh(book)
    return request, book


def delete_request(db: Session, request_id: int) -> None:
    # Borrado administrativo: no importa el estado
    request = get_request(db, request_id)
    db.delete(request)

    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise InternalError("Unexpected error occurred while deleting the request") from exc
