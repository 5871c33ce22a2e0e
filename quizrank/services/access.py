"""
Access gate
Category entitlement is decided by the subscription system; the core only
consumes the decision.
"""

from typing import Optional, Protocol

from quizrank.core.exceptions import AuthorizationException


class AccessGate(Protocol):
    async def can_access(self, user_id: str, category_id: int) -> bool:
        """Whether the user's plan includes the category"""
        ...

    async def allowed_category_count(self, user_id: str) -> Optional[int]:
        """Number of categories in the user's plan, None when every category is included"""
        ...


class OpenAccessGate:
    """Every user is entitled to every category (premium semantics)"""

    async def can_access(self, user_id: str, category_id: int) -> bool:
        return True

    async def allowed_category_count(self, user_id: str) -> Optional[int]:
        return None


async def ensure_category_access(gate: AccessGate, user_id: str, category_id: int) -> None:
    if not await gate.can_access(user_id, category_id):
        raise AuthorizationException(
            "This category is locked. Please upgrade.",
            details={"category_id": category_id},
        )
