from pydantic import BaseModel, EmailStr, Field
from pydantic.alias_generators import to_camel

from bookies.db.models import UserRole

MIN_PASSWORD_LENGTH = 6


class UserCreate(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)


class UserRead(BaseModel):
    id: int
    name: str | None = None
    email: str
    role: UserRole

    class Config:
        from_attributes = True  # pydantic v2


class PasswordChange(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=MIN_PASSWORD_LENGTH)

    class Config:
        alias_generator = to_camel
        populate_by_name = True
