from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, field_validator
from pydantic.alias_generators import to_camel

from bookies.db.models import BookStatus


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite devuelve fechas sin zona; todas se guardan en UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class BookRead(BaseModel):
    id: int
    title: str
    author: str
    isbn: Optional[str] = None
    category: Optional[str] = None
    publisher: Optional[str] = None
    description: Optional[str] = None
    cover_image: Optional[str] = None
    status: BookStatus
    borrowed_by: Optional[str] = None
    borrowed_date: Optional[datetime] = None

    @field_validator("borrowed_date")
    @classmethod
    def borrowed_date_in_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)

    class Config:
        from_attributes = True
        alias_generator = to_camel
        populate_by_name = True
