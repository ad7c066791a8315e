"""Password hashing with Argon2id."""

from __future__ import annotations

import nacl.exceptions
import nacl.pwhash.argon2id

_PREFIX = "$argon2id$"


def hash_password(password: str) -> str:
    """Return an encoded Argon2id hash of ``password`` with a fresh random salt."""
    return nacl.pwhash.argon2id.str(password.encode("utf-8")).decode("ascii")


def check_password_hash(password: str, hash: str) -> bool:
    """Tell whether ``password`` matches ``hash``; a malformed hash raises ValueError."""
    if not hash.startswith(_PREFIX):
        raise ValueError("argon2id: hash is not in the correct format")
    try:
        return nacl.pwhash.argon2id.verify(hash.encode("ascii"), password.encode("utf-8"))
    except nacl.exceptions.InvalidkeyError:
        return False
    except (UnicodeEncodeError, nacl.exceptions.RuntimeError) as exc:
        raise ValueError("argon2id: hash is not in the correct format") from exc