from typing import Any, Dict, Optional

from pydantic import BaseModel, EmailStr, field_validator


class RequestModel(BaseModel):
    """Base for request bodies: every string must be encodable as UTF-8.

    JSON allows lone surrogate escapes such as "\\ud800"; they would
    otherwise reach password hashing or SQLite and fail there.
    """

    @field_validator("*", mode="before")
    @classmethod
    def encodable_text(cls, value: Any) -> Any:
        if isinstance(value, str):
            try:
                value.encode("utf-8")
            except UnicodeEncodeError:
                raise ValueError("text must be valid UTF-8")
        return value


class RegisterRequest(RequestModel):
    email: EmailStr
    password: str
    name: Optional[str] = None
    nickname: Optional[str] = None


class LoginRequest(RequestModel):
    email: EmailStr
    password: str


class PasswordCheckRequest(RequestModel):
    password: str


# Title and content are checked by MemoService so that blank and missing
# values produce the same validation error
class MemoCreate(RequestModel):
    title: Optional[str] = None
    content: Optional[str] = None


class MemoUpdate(RequestModel):
    title: Optional[str] = None
    content: Optional[str] = None


class UserOut(BaseModel):
    id: str
    email: str
    name: Optional[str] = None
    nickname: Optional[str] = None
    createdAt: str


class MemoOut(BaseModel):
    id: str
    title: str
    content: str
    createdAt: str
    updatedAt: str
    userId: str


class PasswordStrengthOut(BaseModel):
    score: int
    checks: Dict[str, bool]
    level: str


class RegisterResponse(BaseModel):
    success: bool
    user: UserOut
    passwordStrength: PasswordStrengthOut
    message: str = "User registered successfully"


class LoginResponse(BaseModel):
    success: bool
    token: str
    user: UserOut
    message: str = "Login successful"


class MessageResponse(BaseModel):
    success: bool
    message: str


class ErrorResponse(BaseModel):
    error: str
    code: str
