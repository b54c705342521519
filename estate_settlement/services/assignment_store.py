"""Process-local cache of the property assignments each agent works on.

Entries are keyed by property id. The cache is loaded from the backend, patched
optimistically after a successful status update and refreshed or invalidated
explicitly. It carries no version check: the backend is last-write-wins and the
cache may lag edits made elsewhere until the next refresh.
"""

from __future__ import annotations

import logging
import time
from threading import Lock

from pydantic import ValidationError

from estate_settlement.core.config import settings
from estate_settlement.schemas.property import PropertyAssignment
from estate_settlement.services.backend_client import BackendClient, BackendError

logger = logging.getLogger(__name__)


class AssignmentStore:
    def __init__(self, ttl_seconds: int | None = None):
        self.ttl_seconds = (
            ttl_seconds if ttl_seconds is not None else settings.ASSIGNMENT_CACHE_TTL_SECONDS
        )
        self._assignments: dict[str, PropertyAssignment] = {}
        self._by_agent: dict[str, set[str]] = {}
        self._loaded_at: dict[str, float] = {}
        self._lock = Lock()

    async def load(self, agent_id: str, backend: BackendClient) -> list[PropertyAssignment]:
        """Replace the agent's cached assignments with a fresh backend copy.

        On backend failure the previous entries are kept and returned.
        """
        try:
            raw = await backend.get_agent_properties(agent_id)
        except BackendError as exc:
            logger.warning("Could not load assignments for agent %s: %s", agent_id, exc)
            return self.for_agent(agent_id)

        assignments: list[PropertyAssignment] = []
        for item in raw:
            try:
                assignments.append(PropertyAssignment.model_validate(item))
            except ValidationError as exc:
                logger.warning("Skipping malformed assignment for agent %s: %s", agent_id, exc)

        with self._lock:
            for property_id in self._by_agent.pop(agent_id, set()):
                self._assignments.pop(property_id, None)
            self._by_agent[agent_id] = {a.id for a in assignments}
            for assignment in assignments:
                self._assignments[assignment.id] = assignment
            self._loaded_at[agent_id] = time.monotonic()

        logger.info("Loaded %d assignments for agent %s", len(assignments), agent_id)
        return assignments

    def is_stale(self, agent_id: str) -> bool:
        loaded_at = self._loaded_at.get(agent_id)
        if loaded_at is None:
            return True
        return time.monotonic() - loaded_at > self.ttl_seconds

    async def ensure_loaded(
        self, agent_id: str, backend: BackendClient
    ) -> list[PropertyAssignment]:
        if self.is_stale(agent_id):
            return await self.load(agent_id, backend)
        return self.for_agent(agent_id)

    def for_agent(self, agent_id: str) -> list[PropertyAssignment]:
        with self._lock:
            ids = self._by_agent.get(agent_id, set())
            return [self._assignments[i] for i in ids if i in self._assignments]

    def get(self, property_id: str) -> PropertyAssignment | None:
        return self._assignments.get(property_id)

    def put(self, assignment: PropertyAssignment, agent_id: str | None = None) -> None:
        with self._lock:
            self._assignments[assignment.id] = assignment
            if agent_id is not None:
                self._by_agent.setdefault(agent_id, set()).add(assignment.id)

    def apply_status(self, property_id: str, sales_status: str) -> PropertyAssignment | None:
        """Optimistically record a committed status change."""
        with self._lock:
            current = self._assignments.get(property_id)
            if current is None:
                return None
            updated = current.model_copy(update={"sales_status": sales_status})
            self._assignments[property_id] = updated
            return updated

    def invalidate(self, property_id: str | None = None) -> None:
        """Drop one property, or everything when no id is given."""
        with self._lock:
            if property_id is None:
                self._assignments.clear()
                self._by_agent.clear()
                self._loaded_at.clear()
                return
            self._assignments.pop(property_id, None)
            for agent_id, ids in self._by_agent.items():
                if property_id in ids:
                    ids.discard(property_id)
                    self._loaded_at.pop(agent_id, None)


assignment_store = AssignmentStore()


def get_assignment_store() -> AssignmentStore:
    return assignment_store
