"""Agent-triggered property status changes and the settlement pipeline.

A settlement runs as a sequence of steps recorded on a ``SettlementRun``:

    resolving-buyer -> [awaiting-buyer-selection] -> updating-status
        -> generating-invoice -> notifying-seller -> done

Any step may end the run in ``error-notified``. Only the buyer lookup and the
status update are fatal; once the backend has committed the status change,
invoice and notification failures degrade to warnings and the status is left
settled.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy.orm import Session

from estate_settlement.models.settlement_run import SettlementRun, SettlementState, StepOutcome
from estate_settlement.repositories.settlement_run_repository import SettlementRunRepository
from estate_settlement.schemas.property import Buyer, PropertyAssignment, SellerInfo
from estate_settlement.schemas.settlement import ToastType
from estate_settlement.schemas.settlement_invoice import (
    GenerateSettlementData,
    SettlementInvoiceRequest,
)
from estate_settlement.services.assignment_store import AssignmentStore
from estate_settlement.services.backend_client import BackendClient, BackendError
from estate_settlement.services.settlement_invoice_service import SettlementInvoiceService
from estate_settlement.services.settlement_notification import (
    SellerNotificationService,
    resolve_seller,
)

logger = logging.getLogger(__name__)

SETTLED = "settled"
DEPOSIT_RATE = Decimal("10")

STATUS_DISPLAY_NAMES = {
    "contract-exchanged": "Contract Exchanged",
    "unconditional": "Unconditional",
    SETTLED: "Settled",
}

# Step names recorded on a run
STEP_RESOLVE_BUYER = "resolve_buyer"
STEP_UPDATE_STATUS = "update_status"
STEP_GENERATE_INVOICE = "generate_invoice"
STEP_PAYMENT_RECORD = "payment_record"
STEP_INVOICE_EMAIL = "invoice_email"
STEP_NOTIFY_SELLER = "notify_seller"


class SettlementConflictError(ValueError):
    """Raised when a run is not in a state that accepts the requested action."""


def _money(value: Decimal) -> str:
    return f"A${value:,.2f}"


def _display_status(status: str) -> str:
    return STATUS_DISPLAY_NAMES.get(status, status)


class SettlementService:
    """Drives status changes and settlements for an agent's properties."""

    def __init__(
        self,
        db: Session,
        backend: BackendClient,
        store: AssignmentStore,
        invoice_service: SettlementInvoiceService | None = None,
        notifier: SellerNotificationService | None = None,
    ):
        self.db = db
        self.backend = backend
        self.store = store
        self.runs = SettlementRunRepository(db)
        self.invoice_service = invoice_service or SettlementInvoiceService(db, backend)
        self.notifier = notifier or SellerNotificationService(backend)

    # ------------------------------------------------------------------
    # Run bookkeeping
    # ------------------------------------------------------------------

    @staticmethod
    def _transition(run: SettlementRun, state: SettlementState) -> None:
        logger.debug("Settlement run %s: %s -> %s", run.id, run.state, state.value)
        run.state = state.value  # type: ignore[assignment]

    @staticmethod
    def _record_step(
        run: SettlementRun, name: str, outcome: StepOutcome, detail: str | None = None
    ) -> None:
        run.steps = [  # type: ignore[assignment]
            *(run.steps or []),
            {"name": name, "outcome": outcome.value, "detail": detail},
        ]

    @staticmethod
    def _toast(run: SettlementRun, toast_type: ToastType, title: str, message: str) -> None:
        run.toasts = [  # type: ignore[assignment]
            *(run.toasts or []),
            {"type": toast_type, "title": title, "message": message},
        ]

    def _abort(self, run: SettlementRun, step: str, title: str, message: str) -> SettlementRun:
        self._record_step(run, step, StepOutcome.HARD_FAIL, message)
        self._toast(run, "error", title, message)
        self._transition(run, SettlementState.ERROR_NOTIFIED)
        return self.runs.save(run)

    def _capture_platform_invoice(
        self, run: SettlementRun, result: dict[str, Any]
    ) -> dict[str, Any] | None:
        data = result.get("data") if isinstance(result.get("data"), dict) else None
        platform_invoice = (data or {}).get("platformInvoice")
        if isinstance(platform_invoice, dict) and platform_invoice.get("generated"):
            run.platform_invoice = platform_invoice  # type: ignore[assignment]
            return platform_invoice
        return None

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def change_status(
        self,
        *,
        agent_id: str,
        property_id: str,
        new_status: str,
        agent_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> SettlementRun:
        """Apply a sales-status change requested by an agent.

        Settling goes through buyer resolution first; any other status is a
        single backend update.
        """
        await self.store.ensure_loaded(agent_id, self.backend)
        run = self.runs.create(
            property_id=property_id,
            agent_id=agent_id,
            agent_name=agent_name,
            requested_status=new_status,
            details=details,
        )
        if new_status == SETTLED:
            return await self._start_settlement(run)
        return await self._update_status(run)

    async def select_buyer(self, run_id: UUID, buyer_id: str) -> SettlementRun | None:
        """Resume a settlement paused for buyer selection.

        Returns None if the run does not exist.

        Raises:
            SettlementConflictError: if the run is not awaiting a buyer.
            ValueError: if the buyer is not one of the run's candidates.
        """
        run = self.runs.get_by_id(run_id)
        if run is None:
            return None
        if run.state != SettlementState.AWAITING_BUYER_SELECTION.value:
            raise SettlementConflictError(
                f"Settlement is {run.state}, not awaiting buyer selection"
            )
        if buyer_id not in {b.get("id") for b in run.buyers or []}:
            raise ValueError(f"Buyer {buyer_id} is not a candidate for this settlement")
        if not self.runs.claim(
            run_id,
            SettlementState.AWAITING_BUYER_SELECTION,
            SettlementState.UPDATING_STATUS,
        ):
            raise SettlementConflictError("Buyer selection is already in progress")
        self.db.refresh(run)

        await self.store.ensure_loaded(str(run.agent_id), self.backend)
        return await self._proceed_with_settlement(run, buyer_id)

    # ------------------------------------------------------------------
    # Plain status updates
    # ------------------------------------------------------------------

    async def _update_status(self, run: SettlementRun) -> SettlementRun:
        property_id = str(run.property_id)
        new_status = str(run.requested_status)
        self._transition(run, SettlementState.UPDATING_STATUS)
        try:
            result = await self.backend.update_property_status(property_id, {"status": new_status})
        except BackendError as exc:
            logger.error("Status update for property %s failed: %s", property_id, exc)
            return self._abort(
                run,
                STEP_UPDATE_STATUS,
                "Status Update Failed",
                exc.message or "Failed to update property status. Please try again.",
            )

        self._record_step(run, STEP_UPDATE_STATUS, StepOutcome.SUCCESS, new_status)
        self.store.apply_status(property_id, new_status)

        message = f"Property status updated to {_display_status(new_status)}"
        platform_invoice = self._capture_platform_invoice(run, result)
        if platform_invoice is not None:
            amount = Decimal(str(platform_invoice.get("amount") or 0))
            message = f"Invoice for {_money(amount)} created and sent to seller."
        self._toast(run, "success", "Status Updated Successfully", message)
        self._transition(run, SettlementState.DONE)
        return self.runs.save(run)

    # ------------------------------------------------------------------
    # Settlement pipeline
    # ------------------------------------------------------------------

    async def _start_settlement(self, run: SettlementRun) -> SettlementRun:
        property_id = str(run.property_id)
        self._transition(run, SettlementState.RESOLVING_BUYER)
        try:
            raw_buyers = await self.backend.get_property_buyers(property_id)
        except BackendError as exc:
            logger.error("Fetching buyers for property %s failed: %s", property_id, exc)
            return self._abort(
                run,
                STEP_RESOLVE_BUYER,
                "Settlement Error",
                "Failed to fetch buyers for settlement. Please try again.",
            )

        buyers: list[Buyer] = []
        for raw in raw_buyers:
            try:
                buyers.append(Buyer.model_validate(raw))
            except ValidationError:
                logger.warning("Ignoring malformed buyer for property %s: %r", property_id, raw)

        if not buyers:
            message = "No buyers found for this property. Cannot proceed with settlement."
            self._record_step(run, STEP_RESOLVE_BUYER, StepOutcome.HARD_FAIL, message)
            self._toast(run, "warning", "No Buyers Found", message)
            self._transition(run, SettlementState.ERROR_NOTIFIED)
            return self.runs.save(run)

        if len(buyers) == 1:
            self._record_step(run, STEP_RESOLVE_BUYER, StepOutcome.SUCCESS, buyers[0].id)
            return await self._proceed_with_settlement(run, buyers[0].id)

        run.buyers = [b.model_dump() for b in buyers]  # type: ignore[assignment]
        self._record_step(
            run,
            STEP_RESOLVE_BUYER,
            StepOutcome.SUCCESS,
            f"{len(buyers)} buyers found, awaiting selection",
        )
        self._transition(run, SettlementState.AWAITING_BUYER_SELECTION)
        return self.runs.save(run)

    async def _proceed_with_settlement(self, run: SettlementRun, buyer_id: str) -> SettlementRun:
        property_id = str(run.property_id)
        settled_on = datetime.now(UTC)
        run.buyer_id = buyer_id  # type: ignore[assignment]
        self._transition(run, SettlementState.UPDATING_STATUS)

        payload = {
            "status": SETTLED,
            "buyerId": buyer_id,
            "settlementDetails": {
                "legalReleaseConfirmed": True,
                "settlementDate": settled_on.isoformat(),
                **(run.details or {}),
            },
        }
        try:
            result = await self.backend.update_property_status(property_id, payload)
        except BackendError as exc:
            logger.error("Settlement of property %s failed: %s", property_id, exc)
            return self._abort(
                run,
                STEP_UPDATE_STATUS,
                "Settlement Failed",
                exc.message or "Failed to settle property. Please try again.",
            )

        self._record_step(run, STEP_UPDATE_STATUS, StepOutcome.SUCCESS, SETTLED)
        self.store.apply_status(property_id, SETTLED)

        message = "Property has been settled with the selected buyer."
        platform_invoice = self._capture_platform_invoice(run, result)
        if platform_invoice is not None:
            amount = Decimal(str(platform_invoice.get("amount") or 0))
            message = f"Invoice for {_money(amount)} created and sent to seller."
        self._toast(run, "success", "Property Settled Successfully", message)
        self.runs.save(run)

        try:
            await self._finalise_settlement(run, settled_on)
        except Exception:
            logger.exception("Settlement run %s failed after status update", run.id)
            self.db.rollback()
            self._toast(
                run,
                "error",
                "Settlement Process Error",
                "Property status updated, but there was an issue with the settlement process. "
                "Please check manually.",
            )
            run.needs_manual_followup = True  # type: ignore[assignment]
            self._transition(run, SettlementState.ERROR_NOTIFIED)
        return self.runs.save(run)

    async def _finalise_settlement(self, run: SettlementRun, settled_on: datetime) -> None:
        """Invoice, payment record and seller notification after a committed settlement."""
        property_id = str(run.property_id)
        assignment = self.store.get(property_id)

        property_details: dict[str, Any] | None = None
        if assignment is None or assignment.seller is None:
            try:
                property_details = await self.backend.get_property(property_id)
            except BackendError as exc:
                logger.warning("Property %s lookup failed: %s", property_id, exc)

        title = (assignment.title if assignment else None) or (
            (property_details or {}).get("title") or "Property"
        )
        price = self._sale_price(assignment, property_details)
        if price > 0:
            deposit = (price * DEPOSIT_RATE / 100).quantize(Decimal("0.01"))
            self._toast(
                run,
                "info",
                "Deposit Handling (Off-platform)",
                f"{_money(deposit)} (10% of sale price) is held in your trust account. "
                "After solicitor confirmation, deduct your commission and remit the balance "
                "to the seller manually.",
            )

        seller = resolve_seller(assignment, property_details)

        self._transition(run, SettlementState.GENERATING_INVOICE)
        invoice_data = await self._generate_invoice(
            run, assignment, title, price, seller, settled_on
        )
        self.runs.save(run)

        self._transition(run, SettlementState.NOTIFYING_SELLER)
        outcome = await self.notifier.notify_seller(
            property_id=property_id,
            property_title=title,
            agent_id=str(run.agent_id),
            agent_name=run.agent_name,  # type: ignore[arg-type]
            seller=seller,
            invoice_data=invoice_data,
            settled_on=settled_on,
        )
        self._record_step(
            run,
            STEP_NOTIFY_SELLER,
            StepOutcome.SUCCESS if outcome.sent else StepOutcome.SOFT_FAIL,
            outcome.message_id if outcome.sent else outcome.toast.message,
        )
        self._toast(run, outcome.toast.type, outcome.toast.title, outcome.toast.message)
        if not outcome.sent:
            run.needs_manual_followup = True  # type: ignore[assignment]

        self._transition(run, SettlementState.DONE)

    @staticmethod
    def _sale_price(
        assignment: PropertyAssignment | None, property_details: dict[str, Any] | None
    ) -> Decimal:
        if assignment is not None and assignment.price:
            return assignment.price_value
        raw = (property_details or {}).get("price")
        if raw in (None, ""):
            return Decimal(0)
        try:
            price = Decimal(str(raw))
        except (InvalidOperation, TypeError, ValueError):
            price = Decimal("NaN")
        if not price.is_finite():
            logger.warning("Ignoring unparseable sale price %r", raw)
            return Decimal(0)
        return price

    async def _generate_invoice(
        self,
        run: SettlementRun,
        assignment: PropertyAssignment | None,
        title: str,
        price: Decimal,
        seller: SellerInfo | None,
        settled_on: datetime,
    ) -> GenerateSettlementData | None:
        request = SettlementInvoiceRequest(
            property_id=str(run.property_id),
            property_title=title,
            property_price=price,
            property_address=assignment.display_address if assignment else None,
            seller_id=seller.id if seller else None,
            seller_name=seller.name if seller else None,
            seller_email=seller.email if seller else None,
            agent_id=str(run.agent_id),
            agent_name=run.agent_name or "Agent",
            settlement_date=settled_on,
        )
        try:
            data = await self.invoice_service.generate(request)
        except ValueError as exc:
            logger.warning("Invoice for property %s not generated: %s", run.property_id, exc)
            self._record_step(run, STEP_GENERATE_INVOICE, StepOutcome.SOFT_FAIL, str(exc))
            self._toast(
                run,
                "warning",
                "Invoice Generation Failed",
                f"Property settled successfully, but invoice generation failed: {exc}. "
                "Please generate invoice manually.",
            )
            run.needs_manual_followup = True  # type: ignore[assignment]
            return None

        invoice = data.invoice
        run.invoice_id = invoice.id  # type: ignore[assignment]
        self._record_step(run, STEP_GENERATE_INVOICE, StepOutcome.SUCCESS, invoice.invoice_number)
        self._record_step(
            run,
            STEP_PAYMENT_RECORD,
            StepOutcome.SUCCESS if data.payment_record is not None else StepOutcome.SOFT_FAIL,
            None if data.payment_record is not None else "Queued for retry",
        )
        self._record_step(
            run,
            STEP_INVOICE_EMAIL,
            StepOutcome.SUCCESS if data.email_sent else StepOutcome.SOFT_FAIL,
            invoice.seller.email,
        )
        self._toast(
            run,
            "success",
            "Invoice Generated",
            f"Invoice {invoice.invoice_number} generated and sent to "
            f"{invoice.seller.name or 'the seller'}",
        )
        return data
