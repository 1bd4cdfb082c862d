"""IDENTIFIER_ATTRIBUTION: link an unknown identifier to the chosen entity."""

import structlog

from entities.store import EntityStore
from errors import ConflictError

from ..models import ConfirmationOption, ConfirmationType, PendingConfirmation
from .base import ConfirmationHandler, HandlerError

logger = structlog.get_logger()


class IdentifierAttributionHandler(ConfirmationHandler):
    confirmation_type = ConfirmationType.IDENTIFIER_ATTRIBUTION

    def __init__(self, entities: EntityStore):
        self.entities = entities

    def apply(self, confirmation: PendingConfirmation, option: ConfirmationOption) -> None:
        if not option.entity_id:
            raise HandlerError(f"Option {option.id} has no entity_id")

        identifier_type = confirmation.context.get("identifier_type")
        identifier_value = confirmation.context.get("identifier_value")
        if not identifier_type or not identifier_value:
            raise HandlerError(
                f"Confirmation {confirmation.id} context lacks identifier_type/identifier_value"
            )

        try:
            self.entities.add_identifier(option.entity_id, identifier_type, str(identifier_value))
        except ConflictError:
            logger.warning(
                "identifier_already_attributed",
                identifier_type=identifier_type,
                entity_id=option.entity_id,
            )
            return
        logger.info(
            "identifier_attributed",
            confirmation_id=confirmation.id,
            entity_id=option.entity_id,
            identifier_type=identifier_type,
        )
