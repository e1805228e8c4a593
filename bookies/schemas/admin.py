# bookies/schemas/admin.py

from datetime import datetime
from typing import List

from pydantic import BaseModel


class RequestStatusCount(BaseModel):
    status: str
    count: int


class AdminStats(BaseModel):
    total_users: int
    total_admins: int

    total_books: int
    borrowed_books: int

    total_requests: int
    pending_requests: int

    requests_by_status: List[RequestStatusCount]

    generated_at: datetime
