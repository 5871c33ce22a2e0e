"""
Request dependencies
Identity comes from the upstream authentication layer; services from app.state.
"""

from typing import Optional

from fastapi import Depends, Header, Request

from quizrank.core.exceptions import AuthenticationException
from quizrank.services.access import ensure_category_access
from quizrank.services.registry import Services
from quizrank.utils.validators import validate_user_id


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_current_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """Authenticated user id forwarded in the X-User-ID header"""
    if not x_user_id:
        raise AuthenticationException()
    return validate_user_id(x_user_id)


async def require_category_access(
    category_id: int,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
) -> int:
    """Gate for routes carrying category_id in the path"""
    await ensure_category_access(services.access_gate, user_id, category_id)
    return category_id
