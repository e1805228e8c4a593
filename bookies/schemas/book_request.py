from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from bookies.db.models import Book, BookRequest, RequestStatus, RequestType, User
from bookies.schemas.book import BookRead, as_utc


class BookRequestCreate(BaseModel):
    book_id: int
    user_email: str = Field(min_length=1)
    request_type: RequestType
    notes: Optional[str] = Field(None, max_length=500)

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class ApproveRequestBody(BaseModel):
    admin_email: Optional[str] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class RejectRequestBody(BaseModel):
    admin_email: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=500)

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class BookRequestRead(BaseModel):
    """Vista plana de una solicitud con los datos del libro y del usuario."""

    id: int
    book_id: int
    book_title: str
    book_author: str
    user_id: int
    user_email: str
    user_name: Optional[str] = None
    request_type: RequestType
    status: RequestStatus
    requested_at: datetime
    processed_at: Optional[datetime] = None
    processed_by_email: Optional[str] = None
    notes: Optional[str] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        frozen = True


class ApprovalResponse(BaseModel):
    request: BookRequestRead
    book: BookRead
    message: str = "Request approved successfully"


class RejectionResponse(BaseModel):
    request: BookRequestRead
    message: str = "Request rejected successfully"


def build_request_view(
    request: BookRequest,
    book: Book,
    user: User,
    processed_by: Optional[User] = None,
) -> BookRequestRead:
    return BookRequestRead(
        id=request.id,
        book_id=book.id,
        book_title=book.title,
        book_author=book.author,
        user_id=user.id,
        user_email=user.email,
        user_name=user.name,
        request_type=request.request_type,
        status=request.status,
        requested_at=as_utc(request.requested_at),
        processed_at=as_utc(request.processed_at),
        processed_by_email=processed_by.email if processed_by else None,
        notes=request.notes,
    )


def to_view(request: BookRequest) -> BookRequestRead:
    # Atajo para cuando la solicitud ya trae sus relaciones cargadas
    return build_request_view(request, request.book, request.user, request.processed_by)
