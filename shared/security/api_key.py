"""
Shared secret for service-to-service calls, most importantly the payment
processor's webhook. An unset INTERNAL_API_KEY does not crash startup, but
every internal call is then rejected until the key is configured.
"""
import os
import secrets
import warnings

INTERNAL_API_KEY: str = os.getenv("INTERNAL_API_KEY", "")

if not INTERNAL_API_KEY:
    warnings.warn(
        "INTERNAL_API_KEY is not set. Internal endpoints will reject every request. "
        "Set this env var in production!",
        stacklevel=2,
    )


def verify_api_key(provided_key: str) -> bool:
    """Verify an API key using constant-time comparison to prevent timing attacks."""
    if not provided_key or not INTERNAL_API_KEY:
        return False
    return secrets.compare_digest(str(provided_key), str(INTERNAL_API_KEY))
