"""Side-effect handlers dispatched for confirmed confirmations."""

from .base import ConfirmationHandler, HandlerError, HandlerRegistry
from .fact_subject import FactSubjectHandler
from .fact_value import FactValueHandler
from .identifier import IdentifierAttributionHandler
from .merge import EntityMergeHandler


def build_registry(entities, pending_facts, events, facts, policy=None) -> HandlerRegistry:
    """Registry with the four standard handlers wired to the given stores."""
    subject_kwargs = {"policy": policy} if policy else {}
    return HandlerRegistry(
        [
            IdentifierAttributionHandler(entities),
            EntityMergeHandler(entities),
            FactSubjectHandler(entities, pending_facts, events, **subject_kwargs),
            FactValueHandler(facts),
        ]
    )


__all__ = [
    "ConfirmationHandler",
    "EntityMergeHandler",
    "FactSubjectHandler",
    "FactValueHandler",
    "HandlerError",
    "HandlerRegistry",
    "IdentifierAttributionHandler",
    "build_registry",
]
