"""Numeric passcode generation."""

import secrets

CODE_MIN = 1000
CODE_MAX = 9999


def generate_code() -> str:
    """Return a 4-digit code drawn uniformly from ``[1000, 9999]``.

    Uses the OS CSPRNG via :mod:`secrets`; codes are not unique keys, so
    collisions across accounts are fine.
    """
    return str(CODE_MIN + secrets.randbelow(CODE_MAX - CODE_MIN + 1))
