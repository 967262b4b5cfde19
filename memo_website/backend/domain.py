from typing import Dict, Optional


class Memo:
    """Represents a single memo owned by one user."""

    def __init__(self, id: str, user_id: str, title: str, content: str, created_time: str, updated_time: str):
        self.id = id
        self.user_id = user_id
        self.title = title
        self.content = content
        self.created_time = created_time
        self.updated_time = updated_time

    def to_dict(self) -> Dict[str, str]:
        """Convert memo to its API representation."""
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "createdAt": self.created_time,
            "updatedAt": self.updated_time,
            "userId": self.user_id,
        }


class User:
    """An account in the credential store. The password hash never leaves this object."""

    def __init__(self, id: str, email: str, password_hash: str, created_time: str,
                 name: Optional[str] = None, nickname: Optional[str] = None):
        self.id = id
        self.email = email
        self.password_hash = password_hash
        self.created_time = created_time
        self.name = name
        self.nickname = nickname

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "nickname": self.nickname,
            "createdAt": self.created_time,
        }


class MemoAppError(Exception):
    """Base class for errors surfaced to API clients."""
    pass


class AuthError(MemoAppError):
    """Missing, invalid or expired session, or bad credentials."""
    pass


class NotFoundError(MemoAppError):
    """Record absent, or not owned by the caller."""
    pass


class ValidationError(MemoAppError):
    """A required field is missing or malformed."""
    pass


class ConflictError(MemoAppError):
    """A unique field (email, nickname) is already taken."""
    pass
