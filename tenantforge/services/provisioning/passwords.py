from __future__ import annotations

import secrets


TEMP_PASSWORD_ALPHABET = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789!@#$%"


def generate_temp_password(length: int = 16) -> str:
    # Only returned to the caller for brand-new identities; never logged or audited.
    return "".join(secrets.choice(TEMP_PASSWORD_ALPHABET) for _ in range(max(length, 8)))
