"""
Token generation for registered credential-sets.
"""

import hashlib
import secrets

from ..constants import Limits


def generate_token(*parts: str) -> str:
    """
    Generate an opaque token for a credential-set.

    The token is a sha256 hex digest over the given parts (address and schema)
    concatenated with a fresh value from the OS CSPRNG, so two registrations of
    the same pair never share a token and tokens cannot be predicted.

    Args:
        *parts: Values the token is derived from

    Returns:
        64-character lowercase hex string
    """
    material = "".join(parts) + secrets.token_hex(Limits.RANDOM_BYTES)
    return hashlib.sha256(material.encode("utf-8")).hexdigest()
