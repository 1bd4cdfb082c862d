"""Handler contract and the type -> handler registry."""

from abc import ABC, abstractmethod

import structlog

from errors import ConfigurationError

from ..models import ConfirmationOption, ConfirmationStatus, ConfirmationType, PendingConfirmation

logger = structlog.get_logger()


class HandlerError(Exception):
    """A confirmed choice could not be applied (bad context, missing option)."""


class ConfirmationHandler(ABC):
    """Applies the side effect of a CONFIRMED confirmation of one type."""

    confirmation_type: ConfirmationType

    def handle(self, confirmation: PendingConfirmation) -> None:
        if confirmation.type != self.confirmation_type:
            logger.warning(
                "confirmation_handler_wrong_type",
                handler=type(self).__name__,
                type=confirmation.type.value,
            )
            return
        if confirmation.status != ConfirmationStatus.CONFIRMED:
            return

        option = confirmation.selected_option
        if option is None:
            raise HandlerError(
                f"Selected option {confirmation.selected_option_id} not found "
                f"in confirmation {confirmation.id}"
            )
        if option.is_decline:
            return
        self.apply(confirmation, option)

    @abstractmethod
    def apply(self, confirmation: PendingConfirmation, option: ConfirmationOption) -> None: ...


class HandlerRegistry:
    """Map from confirmation type to its handler, checked once at startup."""

    def __init__(self, handlers: list[ConfirmationHandler] | None = None):
        self._handlers: dict[ConfirmationType, ConfirmationHandler] = {}
        for handler in handlers or []:
            self.register(handler)

    def register(self, handler: ConfirmationHandler) -> None:
        self._handlers[handler.confirmation_type] = handler

    def get(self, confirmation_type: ConfirmationType) -> ConfirmationHandler:
        return self._handlers[confirmation_type]

    def validate(self) -> None:
        """Raise ConfigurationError unless every confirmation type has a handler."""
        missing = [t.value for t in ConfirmationType if t not in self._handlers]
        if missing:
            raise ConfigurationError(f"No confirmation handler registered for: {', '.join(missing)}")
