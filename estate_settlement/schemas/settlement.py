"""Schemas for the agent-triggered settlement pipeline."""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

from estate_settlement.models.settlement_run import SettlementState
from estate_settlement.schemas.common import CamelModel
from estate_settlement.schemas.property import Buyer

ToastType = Literal["success", "info", "warning", "error"]


class Toast(CamelModel):
    type: ToastType
    title: str
    message: str


class StepResult(CamelModel):
    name: str
    outcome: str
    detail: str | None = None


class StatusChangeRequest(CamelModel):
    status: str = Field(min_length=1)
    agent_name: str | None = None
    settlement_details: dict[str, Any] | None = None


class BuyerSelectionRequest(CamelModel):
    buyer_id: str = Field(min_length=1)


class SettlementRunResponse(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: UUID
    property_id: str
    agent_id: str
    requested_status: str
    buyer_id: str | None = None
    state: str
    buyers: list[Buyer] = Field(default_factory=list)
    steps: list[StepResult] = Field(default_factory=list)
    toasts: list[Toast] = Field(default_factory=list)
    invoice_id: UUID | None = None
    platform_invoice: dict[str, Any] | None = None
    needs_manual_followup: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @computed_field(alias="requiresBuyerSelection")  # type: ignore[prop-decorator]
    @property
    def requires_buyer_selection(self) -> bool:
        return self.state == SettlementState.AWAITING_BUYER_SELECTION.value
