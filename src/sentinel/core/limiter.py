from slowapi import Limiter
from slowapi.util import get_remote_address

# Keyed by client IP; guards the state-changing operator endpoints
limiter = Limiter(key_func=get_remote_address)

ROLLBACK_RATE = "30/minute"
CHAT_RATE = "60/minute"
