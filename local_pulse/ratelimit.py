from slowapi import Limiter
from slowapi.util import get_remote_address

from local_pulse.settings import settings

# Default: per-IP rate limiting
limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)
