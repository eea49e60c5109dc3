from slowapi import Limiter
from slowapi.util import get_remote_address

from mesanet.core import settings


# ============================================================================
# Rate Limiter Setup
# ============================================================================
# Shared Redis storage so limits hold across worker processes
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=settings.redis_url_str,
    default_limits=[settings.rate_limit_default],
    enabled=settings.rate_limit_enabled,
)
