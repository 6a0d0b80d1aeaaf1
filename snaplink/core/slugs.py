"""Slug format rules shared by request schemas and the slug allocator."""

import re
import string

SLUG_ALPHABET = string.ascii_letters + string.digits + "_-"
SLUG_MIN_LENGTH = 5
SLUG_MAX_LENGTH = 12
SLUG_PATTERN = rf"^[A-Za-z0-9_-]{{{SLUG_MIN_LENGTH},{SLUG_MAX_LENGTH}}}$"

_slug_re = re.compile(SLUG_PATTERN)


def is_valid_slug(value: str) -> bool:
    """Check a slug against the 5-12 character ``[A-Za-z0-9_-]`` rule."""
    return bool(_slug_re.fullmatch(value))
