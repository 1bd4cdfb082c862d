"""CLI command modules."""

from .approvals import approvals
from .confirmations import confirmations
from .facts import facts

__all__ = [
    "approvals",
    "confirmations",
    "facts",
]
