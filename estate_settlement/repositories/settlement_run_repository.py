from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from estate_settlement.models.settlement_run import SettlementRun, SettlementState


class SettlementRunRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        *,
        property_id: str,
        agent_id: str,
        requested_status: str,
        agent_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> SettlementRun:
        run = SettlementRun(
            property_id=property_id,
            agent_id=agent_id,
            agent_name=agent_name,
            requested_status=requested_status,
            details=details,
            state=SettlementState.IDLE.value,
            buyers=[],
            steps=[],
            toasts=[],
        )
        self.db.add(run)
        self.db.commit()
        self.db.refresh(run)
        return run

    def get_by_id(self, run_id: UUID) -> SettlementRun | None:
        return self.db.query(SettlementRun).filter(SettlementRun.id == run_id).first()

    def save(self, run: SettlementRun) -> SettlementRun:
        self.db.commit()
        self.db.refresh(run)
        return run

    def claim(self, run_id: UUID, from_state: SettlementState, to_state: SettlementState) -> bool:
        """Move a run between states only if it is still in ``from_state``."""
        updated = (
            self.db.query(SettlementRun)
            .filter(SettlementRun.id == run_id, SettlementRun.state == from_state.value)
            .update({SettlementRun.state: to_state.value}, synchronize_session=False)
        )
        self.db.commit()
        return updated == 1
