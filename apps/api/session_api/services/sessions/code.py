from __future__ import annotations

import secrets
import string

DEFAULT_ALPHABET = string.ascii_uppercase
DEFAULT_CODE_LENGTH = 4


def generate_code(length: int = DEFAULT_CODE_LENGTH, alphabet: str = DEFAULT_ALPHABET) -> str:
    if length < 0:
        raise ValueError("length must be >= 0")
    if not alphabet:
        raise ValueError("alphabet must not be empty")
    # secrets.choice draws via randbelow (rejection sampling), so 26 symbols
    # stay uniform even though 256 is not a multiple of 26.
    return "".join(secrets.choice(alphabet) for _ in range(length))


def code_space_size(length: int = DEFAULT_CODE_LENGTH, alphabet: str = DEFAULT_ALPHABET) -> int:
    return len(alphabet) ** length
