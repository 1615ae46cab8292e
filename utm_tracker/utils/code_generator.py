"""Short code generation utilities."""

import logging
import secrets
import string
from typing import Callable

logger = logging.getLogger(__name__)

# Full alphanumeric alphabet: A-Z, a-z, 0-9
CODE_ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits

DEFAULT_CODE_LENGTH = 8
DEFAULT_MAX_RETRIES = 10

# Extra characters used once every retry has collided
FALLBACK_EXTRA_LENGTH = 2


def generate_code(length: int = DEFAULT_CODE_LENGTH) -> str:
    """Generate a random alphanumeric short code.

    Args:
        length: Length of the code (default 8).

    Returns:
        Random alphanumeric string.
    """
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def generate_unique_code(
    link_exists: Callable[[str], bool],
    length: int = DEFAULT_CODE_LENGTH,
    max_retries: int = DEFAULT_MAX_RETRIES,
) -> str:
    """Generate a code not used by any existing link.

    The existence check is only a pre-check; the unique constraint on
    ``utm_links.code`` decides. After ``max_retries`` collisions a longer
    code is returned without checking.

    Args:
        link_exists: Callable returning True if a code is taken.
        length: Code length.
        max_retries: Collision checks before falling back.

    Returns:
        Short code.
    """
    for _ in range(max_retries):
        code = generate_code(length)
        if not link_exists(code):
            return code

    logger.warning(f"No free {length}-char code after {max_retries} attempts, using a longer code")
    return generate_code(length + FALLBACK_EXTRA_LENGTH)
