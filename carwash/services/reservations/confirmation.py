"""Booking confirmation codes: 8 characters, A-Z and 0-9."""

import secrets
import string
from typing import Callable

from ...errors import ConfirmationCodeGenerationError

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 8
MAX_ATTEMPTS = 10


def generate_confirmation_code(length: int = CODE_LENGTH) -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def generate_unique_confirmation_code(
    exists: Callable[[str], bool],
    max_attempts: int = MAX_ATTEMPTS,
    generator: Callable[[], str] = generate_confirmation_code,
) -> str:
    """
    Generate a code for which exists(code) is False.

    Raises:
        ConfirmationCodeGenerationError: every attempt collided
    """
    for _ in range(max_attempts):
        code = generator()
        if not exists(code):
            return code
    raise ConfirmationCodeGenerationError(
        "Failed to generate unique confirmation code",
        attempts=max_attempts,
    )
