from pydantic import BaseModel

from bookies.db.models import UserRole


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    email: str | None = None
    role: UserRole | None = None


class MessageResponse(BaseModel):
    message: str
