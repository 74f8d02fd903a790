import os
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

# Instância global do rate limiter (inicializada em create_api)
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[f"{int(os.getenv('RATE_LIMIT_PER_MINUTE', '30'))} per minute"],
    storage_uri=os.getenv('RATE_LIMIT_STORAGE_URI', 'memory://'),
)
