"""
Utilities - Option wrapper, precondition assertions and id generation
"""

import uuid

from .option import Option
from .preconditions import (
    is_empty, is_any_empty, require_non_null, require_non_empty, require_true
)


def generate_id() -> str:
    """Generate a new random entity id"""
    return str(uuid.uuid4())


__all__ = [
    "Option", "generate_id",
    "is_empty", "is_any_empty", "require_non_null", "require_non_empty", "require_true"
]
