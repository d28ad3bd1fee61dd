"""
Admin token check and guest-facing rate limiting
"""

import secrets
import time
from collections import defaultdict
from typing import Dict, List

from fastapi import HTTPException, Depends, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.core.config import settings

# (scope, client ip) -> request timestamps within the last minute
rate_limiter: Dict[tuple, List[float]] = defaultdict(list)

security = HTTPBearer()

def verify_admin_token(credentials: HTTPAuthorizationCredentials = Depends(security)):
    """Verify the planner's admin bearer token"""
    if not secrets.compare_digest(credentials.credentials, settings.ADMIN_TOKEN):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin token"
        )
    return credentials.credentials

def rate_limit_check(client_ip: str, limit: int = None, scope: str = "guest") -> bool:
    """Sliding one-minute window per client and scope"""
    if limit is None:
        limit = settings.RATE_LIMIT_PER_MINUTE

    key = (scope, client_ip)
    minute_ago = time.time() - 60
    rate_limiter[key] = [t for t in rate_limiter[key] if t > minute_ago]

    if len(rate_limiter[key]) >= limit:
        return False

    rate_limiter[key].append(time.time())
    return True

def get_client_ip(request: Request) -> str:
    """Client address, honouring reverse proxy headers"""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    return request.client.host if request.client else "unknown"
