"""
Input rules shared by every entry point.

Each check returns the accepted value or raises ValueError with a message fit
for the caller. Pydantic schemas call them from field validators; services call
them again before writing ratings.
"""

import re

NAME_MIN_LENGTH = 20
NAME_MAX_LENGTH = 60
ADDRESS_MAX_LENGTH = 400
PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 16
PASSWORD_SYMBOLS = "!@#$%^&*"
RATING_MIN = 1
RATING_MAX = 5

_UPPERCASE = re.compile(r"[A-Z]")
_SYMBOL = re.compile("[" + re.escape(PASSWORD_SYMBOLS) + "]")

PASSWORD_RULE = (
    f"Password must be {PASSWORD_MIN_LENGTH}-{PASSWORD_MAX_LENGTH} characters long, "
    f"include at least one uppercase letter and one special character ({PASSWORD_SYMBOLS})"
)


def check_name(name: str) -> str:
    if not (NAME_MIN_LENGTH <= len(name) <= NAME_MAX_LENGTH):
        raise ValueError(f"Name must be between {NAME_MIN_LENGTH} and {NAME_MAX_LENGTH} characters")
    return name


def check_address(address: str) -> str:
    if not address.strip():
        raise ValueError("Address is required")
    if len(address) > ADDRESS_MAX_LENGTH:
        raise ValueError(f"Address must be at most {ADDRESS_MAX_LENGTH} characters")
    return address


def check_password(password: str) -> str:
    if not (PASSWORD_MIN_LENGTH <= len(password) <= PASSWORD_MAX_LENGTH):
        raise ValueError(PASSWORD_RULE)
    if not _UPPERCASE.search(password) or not _SYMBOL.search(password):
        raise ValueError(PASSWORD_RULE)
    return password


def check_rating_value(value) -> int:
    # bool is an int subclass; True must not pass as a 1-star rating
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Rating must be an integer between {RATING_MIN} and {RATING_MAX}")
    if not (RATING_MIN <= value <= RATING_MAX):
        raise ValueError(f"Rating must be between {RATING_MIN} and {RATING_MAX}")
    return value
