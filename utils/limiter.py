from fastapi import Request
from slowapi import Limiter


def forwarded_for_ip(request: Request) -> str:
    """Resolve client IP using X-Forwarded-For first, then fallback to socket IP."""
    xff = request.headers.get("x-forwarded-for")
    if xff:
        ip = xff.split(',')[0].strip()
        if ip:
            return ip
    return request.client.host if request.client else ""


# Shared across the app and routers. In-memory storage: the bridge runs as a
# single process next to its registry file.
limiter = Limiter(key_func=forwarded_for_ip)
