"""ENTITY_MERGE: fold the source entity into the target."""

import structlog

from entities.store import EntityStore

from ..models import ConfirmationOption, ConfirmationType, PendingConfirmation
from .base import ConfirmationHandler, HandlerError

logger = structlog.get_logger()


class EntityMergeHandler(ConfirmationHandler):
    confirmation_type = ConfirmationType.ENTITY_MERGE

    def __init__(self, entities: EntityStore):
        self.entities = entities

    def apply(self, confirmation: PendingConfirmation, option: ConfirmationOption) -> None:
        source_id = confirmation.context.get("source_entity_id")
        target_id = confirmation.context.get("target_entity_id")
        if not source_id or not target_id:
            raise HandlerError(
                f"Confirmation {confirmation.id} context lacks source_entity_id/target_entity_id"
            )

        moved = self.entities.merge(source_id, target_id)
        logger.info("entity_merge_confirmed", confirmation_id=confirmation.id, **moved)
