"""Validation utilities for scoring inputs"""

import re
from typing import Any

from quizrank.core.exceptions import ValidationException

USER_ID_PATTERN = re.compile(r"^[A-Za-z0-9_.:@-]{1,64}$")
MAX_OPTION_LENGTH = 1000


def validate_user_id(user_id: Any) -> str:
    """Identity handed over by the authentication layer"""
    if not isinstance(user_id, str) or not USER_ID_PATTERN.fullmatch(user_id):
        raise ValidationException("Invalid user id", details={"field": "user_id"})
    return user_id


def validate_record_id(value: Any, field: str) -> int:
    """Positive integer primary key"""
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationException(f"Invalid {field}", details={"field": field})
    return value


def validate_selected_option(option: Any) -> str:
    if not isinstance(option, str) or not option or len(option) > MAX_OPTION_LENGTH:
        raise ValidationException("Invalid selected option", details={"field": "selected_option"})
    return option
