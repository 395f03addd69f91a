from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import settings

# Per-client limiter for the rule execution endpoints
limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)
