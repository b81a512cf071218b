from slowapi import Limiter
from slowapi.util import get_remote_address

# Per-client-IP limiter shared by the public ingestion routes
limiter = Limiter(key_func=get_remote_address)
