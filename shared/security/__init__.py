from .jwt_handler import create_access_token, verify_access_token
from .api_key import verify_api_key
from .identity import Actor, Role
from .dependencies import get_current_actor, verify_internal_api_key
from .rate_limiter import limiter, user_id_or_ip

__all__ = [
    "create_access_token",
    "verify_access_token",
    "verify_api_key",
    "Actor",
    "Role",
    "get_current_actor",
    "verify_internal_api_key",
    "limiter",
    "user_id_or_ip"
]
