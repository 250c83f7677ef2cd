# portal/schemas/user_schema.py
import re
from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field, field_validator, model_validator

from portal.schemas.common import CamelModel

USERNAME_RE = re.compile(r"^[a-zA-Z0-9]+$")
# at least one letter and one digit
PASSWORD_RE = re.compile(r"^(?=.*[a-zA-Z])(?=.*\d)[a-zA-Z\d@$!%*?&]{6,}$")


def is_strong_password(value: str) -> bool:
    return 6 <= len(value) <= 50 and bool(PASSWORD_RE.match(value))


def _check_password(value: str) -> str:
    if not is_strong_password(value):
        raise ValueError("Password must contain at least one letter and one digit")
    return value


# Requests
class LoginIn(CamelModel):
    username: str = Field(min_length=1, max_length=20)
    password: str = Field(min_length=1, max_length=50)


class RegisterIn(CamelModel):
    username: str = Field(min_length=3, max_length=20)
    password: str = Field(min_length=6, max_length=50)
    confirm_password: str = Field(min_length=1)
    email: Optional[EmailStr] = None
    question: Optional[str] = Field(None, max_length=255)
    answer: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)

    @field_validator("username")
    @classmethod
    def username_alnum(cls, v: str) -> str:
        if not USERNAME_RE.match(v):
            raise ValueError("Username may only contain letters and digits")
        return v

    @field_validator("password")
    @classmethod
    def password_strength(cls, v: str) -> str:
        return _check_password(v)

    @field_validator("email", "question", "answer", "phone", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Password confirmation does not match")
        return self


class ChangePasswordIn(CamelModel):
    # strength is checked by the service, after the unchanged-password check
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=1, max_length=50)


# Responses
class UserOut(CamelModel):
    id: int
    name: str
    email: Optional[str] = None
    question: Optional[str] = None
    phone: Optional[str] = None
    point: int
    is_online: bool
    is_lock: bool
    last_ip_login: Optional[str] = None
    date_registered: Optional[datetime] = None
    date_modified: Optional[datetime] = None
