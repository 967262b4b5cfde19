"""
Password hashing and advisory strength scoring.

Hashes are salted PBKDF2-SHA256 strings of the form
``pbkdf2_sha256$<iterations>$<salt hex>$<digest hex>`` so the iteration count
can be raised later without invalidating stored credentials.
"""

import hashlib
import hmac
import re
import secrets
from typing import Dict, List, NamedTuple

from .config import Config

HASH_ALGORITHM = "pbkdf2_sha256"
SPECIAL_CHARACTERS = re.compile(r'[!@#$%^&*(),.?":{}|<>]')

# Advisory score length; registration may enforce a different Config.MIN_PASSWORD_LENGTH
STRENGTH_MIN_LENGTH = 8

# (check name, human-readable requirement), in the order problems are reported
CHECKS = [
    ("length", "at least {min_length} characters"),
    ("uppercase", "an uppercase letter"),
    ("lowercase", "a lowercase letter"),
    ("numbers", "a digit"),
    ("special", "a special character"),
]


class PasswordStrength(NamedTuple):
    score: int
    checks: Dict[str, bool]
    level: str

    def to_dict(self) -> Dict[str, object]:
        return {"score": self.score, "checks": dict(self.checks), "level": self.level}


def hash_password(password: str, iterations: int | None = None) -> str:
    """
    Hash a password with a fresh random salt.

    Args:
        password (str): Plain text password
        iterations (int): PBKDF2 rounds, defaults to Config.PASSWORD_HASH_ITERATIONS

    Returns:
        str: Encoded hash suitable for storage and for verify_password()
    """
    rounds = iterations or Config.PASSWORD_HASH_ITERATIONS
    salt = secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt, rounds)
    return f"{HASH_ALGORITHM}${rounds}${salt.hex()}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    """Check a plain text password against an encoded hash in constant time."""
    try:
        algorithm, rounds, salt_hex, digest_hex = stored.split("$")
        if algorithm != HASH_ALGORITHM:
            return False
        expected = bytes.fromhex(digest_hex)
        actual = hashlib.pbkdf2_hmac("sha256", password.encode(), bytes.fromhex(salt_hex), int(rounds))
    except ValueError:
        return False
    return hmac.compare_digest(actual, expected)


def password_checks(password: str, min_length: int = STRENGTH_MIN_LENGTH) -> Dict[str, bool]:
    return {
        "length": len(password) >= min_length,
        "lowercase": re.search(r"[a-z]", password) is not None,
        "uppercase": re.search(r"[A-Z]", password) is not None,
        "numbers": re.search(r"\d", password) is not None,
        "special": SPECIAL_CHARACTERS.search(password) is not None,
    }


def strength_level(score: int) -> str:
    if score <= 1:
        return "weak"
    if score <= 3:
        return "medium"
    return "strong"


def password_strength(password: str) -> PasswordStrength:
    """Score a password by how many of the five checks it satisfies.

    Purely advisory: the score is the count of satisfied checks, so satisfying
    one more check can only raise it.
    """
    checks = password_checks(password)
    score = sum(1 for passed in checks.values() if passed)
    return PasswordStrength(score, checks, strength_level(score))


def password_problems(password: str, min_length: int = STRENGTH_MIN_LENGTH) -> List[str]:
    """Return the unmet requirements, e.g. ["an uppercase letter", "a digit"]."""
    checks = password_checks(password, min_length)
    return [requirement.format(min_length=min_length) for name, requirement in CHECKS if not checks[name]]
