"""Username and password check for the login service."""

from __future__ import annotations

import logging
from dataclasses import dataclass

__all__ = ["LoginResult", "is_valid_user", "login"]

log = logging.getLogger(__name__)

_VALID_USERNAME = "test"
_VALID_PASSWORD = "password"


@dataclass(frozen=True)
class LoginResult:
    """Outcome of a login attempt."""

    success: bool
    error_message: str = ""


def is_valid_user(username: str, password: str) -> bool:
    """Tell whether the credentials match the single known account."""
    return username == _VALID_USERNAME and password == _VALID_PASSWORD


def login(username: str, password: str) -> LoginResult:
    """Check the credentials and describe the outcome."""
    log.info("Received login request for user: %s", username)
    if is_valid_user(username, password):
        return LoginResult(success=True)
    return LoginResult(success=False, error_message="Invalid credentials")