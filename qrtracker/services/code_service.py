import secrets

CODE_BYTES = 4


def generate_code() -> str:
    """Return a random code of ``2 * CODE_BYTES`` lowercase hex characters.

    Uniqueness is not checked here; the ``qr_codes.code`` unique constraint is
    the authority and callers regenerate on conflict.
    """
    return secrets.token_hex(CODE_BYTES)
