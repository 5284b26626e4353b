"""HMAC-SHA256 request signing for the MEXC REST API."""

import hashlib
import hmac
from typing import Union

from .errors import SignatureError


def sign(secret_key: Union[str, bytes], message: str) -> str:
    """
    Sign a canonical query string.

    Args:
        secret_key: MEXC secret key (never transmitted)
        message: Exact query string that will be sent

    Returns:
        Lowercase hexadecimal HMAC-SHA256 digest
    """
    if not secret_key:
        raise SignatureError("Cannot sign request: secret key is empty")

    key = secret_key.encode("utf-8") if isinstance(secret_key, str) else secret_key
    try:
        return hmac.new(key, message.encode("utf-8"), hashlib.sha256).hexdigest()
    except (TypeError, ValueError) as e:
        raise SignatureError(f"Cannot sign request: {e}") from e


def build_query_string(params: dict, sort: bool = True) -> str:
    """Join parameters as `key=value&...`, sorted by key unless told otherwise."""
    keys = sorted(params) if sort else list(params)
    return "&".join(f"{key}={params[key]}" for key in keys)
