"""
Password Rules

Complexity rules shared by self-registration and admin password resets.
"""

import re
import secrets
import string

MIN_PASSWORD_LENGTH = 8
REQUIRED_CHARACTER_CLASSES = 3

USERNAME_PATTERN = re.compile(r"[A-Za-z0-9]+")

_CHARACTER_CLASSES = (
    re.compile(r"[a-z]"),
    re.compile(r"[A-Z]"),
    re.compile(r"[0-9]"),
    re.compile(r"[^a-zA-Z0-9]"),
)


def character_class_count(password: str) -> int:
    """Count how many of lower, upper, digit and symbol the password uses."""
    return sum(1 for pattern in _CHARACTER_CLASSES if pattern.search(password))


def check_password_complexity(password: str) -> bool:
    """
    Check the directory's password rule.

    At least 8 characters, using at least 3 of: lowercase, uppercase,
    digit, symbol.
    """
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        return False
    return character_class_count(password) >= REQUIRED_CHARACTER_CLASSES


def is_valid_username(username: str) -> bool:
    return bool(username) and USERNAME_PATTERN.fullmatch(username) is not None


def password_contains_username(password: str, username: str) -> bool:
    """Case-insensitive substring check."""
    return bool(username) and username.lower() in password.lower()


def generate_secure_password(length: int = 16) -> str:
    """
    Generate a random password that satisfies the complexity rule.

    Args:
        length: Password length

    Returns:
        Secure random password
    """
    alphabet = string.ascii_letters + string.digits + "!@#$%^&*-_=+?"
    while True:
        password = "".join(secrets.choice(alphabet) for _ in range(length))
        if character_class_count(password) == len(_CHARACTER_CLASSES):
            return password
