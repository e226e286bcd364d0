"""Recurring trigger registry.

A trigger says "call this handler every N seconds". The worker loop polls the
registry; resume() removes its own trigger once the queue is empty.
"""

import json
import logging
from datetime import datetime, timezone

from pydantic import BaseModel, Field, TypeAdapter

from enricher.collaborators.state_store import StateStore
from enricher.core.config import StateKeys

logger = logging.getLogger(__name__)


class Trigger(BaseModel):
    handler: str
    period_seconds: float
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


_TRIGGER_LIST = TypeAdapter(list[Trigger])


class TriggerRegistry:
    """Triggers persisted as a JSON list in the state store."""

    def __init__(self, state: StateStore):
        self.state = state

    def all(self) -> list[Trigger]:
        raw = self.state.get(StateKeys.TRIGGERS)
        if not raw:
            return []
        return _TRIGGER_LIST.validate_json(raw)

    def _save(self, triggers: list[Trigger]) -> None:
        if triggers:
            self.state.set(StateKeys.TRIGGERS, json.dumps([t.model_dump(mode="json") for t in triggers]))
        else:
            self.state.delete(StateKeys.TRIGGERS)

    def ensure(self, handler: str, period_seconds: float) -> Trigger:
        """Delete any trigger for the handler, then create exactly one."""
        triggers = [t for t in self.all() if t.handler != handler]
        trigger = Trigger(handler=handler, period_seconds=period_seconds)
        triggers.append(trigger)
        self._save(triggers)
        logger.debug(f"Trigger ensured: {handler} every {period_seconds:.0f}s")
        return trigger

    def remove(self, handler: str) -> bool:
        """Remove the handler's trigger. Returns True if one existed."""
        triggers = self.all()
        remaining = [t for t in triggers if t.handler != handler]
        if len(remaining) == len(triggers):
            return False
        self._save(remaining)
        logger.debug(f"Trigger removed: {handler}")
        return True

    def is_active(self, handler: str) -> bool:
        return any(t.handler == handler for t in self.all())

    def get(self, handler: str) -> Trigger | None:
        for trigger in self.all():
            if trigger.handler == handler:
                return trigger
        return None
