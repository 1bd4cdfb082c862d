"""FACT_SUBJECT: settle which entity a pending fact or extracted event is about."""

import re

import structlog

from entities.models import EntityType
from entities.pending import ExtractedEventStore, PendingFactStore
from entities.store import EntityStore
from fusion.policy import DEFAULT_POLICY, FusionPolicy

from ..models import ConfirmationOption, ConfirmationType, PendingConfirmation
from .base import ConfirmationHandler, HandlerError

logger = structlog.get_logger()

# description looks like: Mention: "Igor"
_QUOTED_NAME = re.compile(r'"([^"]+)"')


def suggested_name(context: dict) -> str | None:
    description = context.get("description")
    if not isinstance(description, str):
        return None
    match = _QUOTED_NAME.search(description)
    return match.group(1) if match else None


class FactSubjectHandler(ConfirmationHandler):
    confirmation_type = ConfirmationType.FACT_SUBJECT

    def __init__(
        self,
        entities: EntityStore,
        pending_facts: PendingFactStore,
        events: ExtractedEventStore,
        policy: FusionPolicy = DEFAULT_POLICY,
    ):
        self.entities = entities
        self.pending_facts = pending_facts
        self.events = events
        self.policy = policy

    def apply(self, confirmation: PendingConfirmation, option: ConfirmationOption) -> None:
        if option.is_create_new:
            name = suggested_name(confirmation.context)
            if not name:
                raise HandlerError(
                    f"No suggested name in confirmation {confirmation.id} description"
                )
            entity_id = self.entities.create(name, EntityType.PERSON).id
        elif option.entity_id:
            entity_id = option.entity_id
        else:
            raise HandlerError(f"Option {option.id} has no entity_id")

        if confirmation.source_pending_fact_id:
            approve = (
                confirmation.confidence is not None
                and confirmation.confidence >= self.policy.auto_resolve_threshold
            )
            self.pending_facts.assign_subject(
                confirmation.source_pending_fact_id, entity_id, approve=approve
            )
            logger.info(
                "pending_fact_subject_set",
                pending_fact_id=confirmation.source_pending_fact_id,
                entity_id=entity_id,
                auto_approved=approve,
            )
        elif confirmation.source_extracted_event_id:
            self.events.assign_subject(confirmation.source_extracted_event_id, entity_id)
            logger.info(
                "extracted_event_subject_set",
                event_id=confirmation.source_extracted_event_id,
                entity_id=entity_id,
            )
        else:
            logger.warning("fact_subject_without_source", confirmation_id=confirmation.id)
