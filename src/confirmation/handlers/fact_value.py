"""FACT_VALUE: overwrite a fact's value with the confirmed one."""

import structlog

from fusion.store import FactStore

from ..models import ConfirmationOption, ConfirmationType, PendingConfirmation
from .base import ConfirmationHandler, HandlerError

logger = structlog.get_logger()


class FactValueHandler(ConfirmationHandler):
    confirmation_type = ConfirmationType.FACT_VALUE

    def __init__(self, facts: FactStore):
        self.facts = facts

    def apply(self, confirmation: PendingConfirmation, option: ConfirmationOption) -> None:
        fact_id = confirmation.context.get("fact_id")
        if not fact_id:
            raise HandlerError(f"Confirmation {confirmation.id} context lacks fact_id")

        new_value = (confirmation.resolution or {}).get("new_value") or option.label
        if not new_value:
            raise HandlerError(f"No value to apply for confirmation {confirmation.id}")

        self.facts.update_value(fact_id, new_value)
        logger.info("fact_value_confirmed", confirmation_id=confirmation.id, fact_id=fact_id)
