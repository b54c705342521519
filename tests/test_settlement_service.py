"""Tests for agent status changes and the settlement pipeline."""

from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy.exc import SQLAlchemyError

from estate_settlement.core import database as db_module
from estate_settlement.core.database import get_db
from estate_settlement.models.settlement_invoice import SettlementInvoice
from estate_settlement.models.settlement_run import SettlementState
from estate_settlement.repositories.settlement_invoice_repository import (
    SettlementInvoiceRepository,
)
from estate_settlement.repositories.settlement_run_repository import SettlementRunRepository
from estate_settlement.services.assignment_store import AssignmentStore
from estate_settlement.services.settlement_invoice_service import SettlementInvoiceService
from estate_settlement.services.settlement_service import (
    SettlementConflictError,
    SettlementService,
)
from tests.conftest import AGENT_ID, PROPERTY_ID, SELLER_ID, property_payload

AGENT_PROPERTIES = f"/api/agent/{AGENT_ID}/properties"
BUYERS = f"/api/properties/{PROPERTY_ID}/buyers"
STATUS = f"/api/properties/{PROPERTY_ID}/status"
PROPERTY = f"/api/properties/{PROPERTY_ID}"
PAYMENT_RECORDS = "/api/admin/payment-records"
MESSAGES = "/api/messages"

BUYER_ONE = {"_id": "buyer-0001", "name": "Bea Buyer", "email": "bea@example.com"}
BUYER_TWO = {"_id": "buyer-0002", "name": "Ben Buyer", "email": "ben@example.com"}


@pytest.fixture
def db_session():
    """Create a database session for testing."""
    gen = get_db()
    db = next(gen)
    try:
        yield db
    finally:
        for _ in gen:
            pass


@pytest.fixture
def marketplace(fake_backend):
    """Backend routes for a happy-path settlement."""
    fake_backend.on(
        "GET",
        AGENT_PROPERTIES,
        (200, {"success": True, "data": {"properties": [property_payload()]}}),
    )
    fake_backend.on("GET", BUYERS, (200, {"success": True, "data": [BUYER_ONE]}))
    fake_backend.on("PATCH", STATUS, (200, {"success": True, "data": {"_id": PROPERTY_ID}}))
    fake_backend.on("POST", PAYMENT_RECORDS, (201, {"success": True, "data": {"_id": "pr-1"}}))
    fake_backend.on("POST", MESSAGES, (201, {"success": True, "data": {"_id": "msg-1"}}))
    return fake_backend


@pytest_asyncio.fixture
async def service(db_session, marketplace):
    email_service = MagicMock()
    email_service.send_settlement_invoice_email = AsyncMock(return_value=True)
    async with marketplace.client() as backend:
        yield SettlementService(
            db_session,
            backend,
            AssignmentStore(),
            invoice_service=SettlementInvoiceService(
                db_session, backend, email_service=email_service
            ),
        )


def _titles(run) -> list[str]:  # type: ignore[no-untyped-def]
    return [t["title"] for t in run.toasts]


def _steps(run) -> dict[str, str]:  # type: ignore[no-untyped-def]
    return {s["name"]: s["outcome"] for s in run.steps}


async def _settle(service: SettlementService, **kwargs):  # type: ignore[no-untyped-def]
    return await service.change_status(
        agent_id=AGENT_ID,
        property_id=PROPERTY_ID,
        new_status="settled",
        agent_name="Alex Agent",
        **kwargs,
    )


class TestBuyerResolution:
    @pytest.mark.asyncio
    async def test_no_buyers_aborts_before_status_update(self, service, marketplace) -> None:
        marketplace.on("GET", BUYERS, (200, {"success": True, "data": []}))

        run = await _settle(service)

        assert run.state == SettlementState.ERROR_NOTIFIED.value
        assert run.toasts == [
            {
                "type": "warning",
                "title": "No Buyers Found",
                "message": "No buyers found for this property. Cannot proceed with settlement.",
            }
        ]
        assert marketplace.calls("PATCH", STATUS) == []
        assert _steps(run) == {"resolve_buyer": "hard_fail"}

    @pytest.mark.asyncio
    async def test_unsuccessful_envelope_counts_as_no_buyers(self, service, marketplace) -> None:
        marketplace.on("GET", BUYERS, (200, {"success": False, "message": "No buyers"}))

        run = await _settle(service)

        assert _titles(run) == ["No Buyers Found"]
        assert marketplace.calls("PATCH", STATUS) == []

    @pytest.mark.asyncio
    async def test_buyer_fetch_failure(self, service, marketplace) -> None:
        marketplace.on("GET", BUYERS, (500, {"message": "boom"}))

        run = await _settle(service)

        assert run.state == SettlementState.ERROR_NOTIFIED.value
        assert run.toasts[0]["type"] == "error"
        assert run.toasts[0]["title"] == "Settlement Error"
        assert marketplace.calls("PATCH", STATUS) == []

    @pytest.mark.asyncio
    async def test_several_buyers_wait_for_selection(self, service, marketplace) -> None:
        marketplace.on("GET", BUYERS, (200, {"success": True, "data": [BUYER_ONE, BUYER_TWO]}))

        run = await _settle(service)

        assert run.state == SettlementState.AWAITING_BUYER_SELECTION.value
        assert [b["id"] for b in run.buyers] == ["buyer-0001", "buyer-0002"]
        assert run.toasts == []
        assert marketplace.calls("PATCH", STATUS) == []


class TestSettlement:
    @pytest.mark.asyncio
    async def test_single_buyer_settles_end_to_end(
        self, service, marketplace, db_session
    ) -> None:
        run = await _settle(service, details={"solicitor": "Smith & Co"})

        assert run.state == SettlementState.DONE.value
        assert run.buyer_id == "buyer-0001"
        assert run.needs_manual_followup is False

        patch_body = marketplace.body(marketplace.calls("PATCH", STATUS)[0])
        assert patch_body["status"] == "settled"
        assert patch_body["buyerId"] == "buyer-0001"
        assert patch_body["settlementDetails"]["legalReleaseConfirmed"] is True
        assert patch_body["settlementDetails"]["solicitor"] == "Smith & Co"
        assert "settlementDate" in patch_body["settlementDetails"]

        assert _titles(run) == [
            "Property Settled Successfully",
            "Deposit Handling (Off-platform)",
            "Invoice Generated",
            "Settlement Notification Sent",
        ]
        assert "A$100,000.00" in run.toasts[1]["message"]
        assert _steps(run) == {
            "resolve_buyer": "success",
            "update_status": "success",
            "generate_invoice": "success",
            "payment_record": "success",
            "invoice_email": "success",
            "notify_seller": "success",
        }

        invoice = db_session.query(SettlementInvoice).one()
        assert run.invoice_id == invoice.id
        assert invoice.seller_id == SELLER_ID
        assert invoice.property_title == "12 Harbour Street"
        assert str(invoice.total_amount) == "12100.00"
        assert run.toasts[2]["message"] == (
            f"Invoice {invoice.invoice_number} generated and sent to Sam Seller"
        )

        message = marketplace.body(marketplace.calls("POST", MESSAGES)[0])
        assert message["recipientId"] == SELLER_ID
        assert message["invoiceNumber"] == invoice.invoice_number
        assert service.store.get(PROPERTY_ID).sales_status == "settled"

    @pytest.mark.asyncio
    async def test_status_update_failure_is_fatal(self, service, marketplace, db_session) -> None:
        marketplace.on("PATCH", STATUS, (400, {"message": "Legal release not confirmed"}))

        run = await _settle(service)

        assert run.state == SettlementState.ERROR_NOTIFIED.value
        assert run.toasts == [
            {
                "type": "error",
                "title": "Settlement Failed",
                "message": "Legal release not confirmed",
            }
        ]
        assert db_session.query(SettlementInvoice).count() == 0
        assert marketplace.calls("POST", MESSAGES) == []
        assert service.store.get(PROPERTY_ID).sales_status == "unconditional"

    @pytest.mark.asyncio
    async def test_payment_record_failure_is_soft(self, service, marketplace) -> None:
        marketplace.on("POST", PAYMENT_RECORDS, (500, {"message": "boom"}))

        run = await _settle(service)

        assert run.state == SettlementState.DONE.value
        assert _steps(run)["payment_record"] == "soft_fail"
        assert "Invoice Generated" in _titles(run)
        assert len(marketplace.calls("POST", MESSAGES)) == 1

    @pytest.mark.asyncio
    async def test_unresolved_seller_degrades_to_warnings(self, service, marketplace) -> None:
        marketplace.on(
            "GET",
            AGENT_PROPERTIES,
            (200, {"success": True, "data": {"properties": [property_payload(seller=None)]}}),
        )
        marketplace.on("GET", PROPERTY, (200, {"success": True, "data": {"_id": PROPERTY_ID}}))

        run = await _settle(service)

        assert run.state == SettlementState.DONE.value
        assert run.needs_manual_followup is True
        assert _titles(run) == [
            "Property Settled Successfully",
            "Deposit Handling (Off-platform)",
            "Invoice Generation Failed",
            "Notification Warning",
        ]
        assert "Missing required fields: sellerId" in run.toasts[2]["message"]
        assert _steps(run)["generate_invoice"] == "soft_fail"
        assert _steps(run)["notify_seller"] == "soft_fail"
        assert marketplace.calls("POST", MESSAGES) == []

    @pytest.mark.asyncio
    async def test_seller_from_property_record(self, service, marketplace, db_session) -> None:
        marketplace.on(
            "GET",
            AGENT_PROPERTIES,
            (200, {"success": True, "data": {"properties": [property_payload(seller=None)]}}),
        )
        marketplace.on(
            "GET",
            PROPERTY,
            (200, {"success": True, "data": {"seller": {"_id": "seller-777777", "name": "Rita"}}}),
        )

        run = await _settle(service)

        assert run.state == SettlementState.DONE.value
        assert db_session.query(SettlementInvoice).one().seller_id == "seller-777777"

    @pytest.mark.asyncio
    async def test_notification_failure_keeps_settlement(self, service, marketplace) -> None:
        marketplace.on("POST", MESSAGES, (500, {"message": "boom"}))

        run = await _settle(service)

        assert run.state == SettlementState.DONE.value
        assert run.needs_manual_followup is True
        assert run.toasts[-1]["title"] == "Notification Warning"
        assert _steps(run)["generate_invoice"] == "success"


    @pytest.mark.asyncio
    async def test_unparseable_backend_price_skips_invoice(self, service, marketplace) -> None:
        marketplace.on(
            "GET", AGENT_PROPERTIES, (200, {"success": True, "data": {"properties": []}})
        )
        marketplace.on(
            "GET",
            PROPERTY,
            (
                200,
                {
                    "property": {
                        "_id": PROPERTY_ID,
                        "title": "12 Harbour Street",
                        "price": "$1,000,000",
                        "seller": {"_id": SELLER_ID, "name": "Sam Seller"},
                    }
                },
            ),
        )

        run = await _settle(service)

        assert run.state == SettlementState.DONE.value
        assert run.needs_manual_followup is True
        assert "Invoice Generation Failed" in _titles(run)
        assert "Deposit Handling (Off-platform)" not in _titles(run)
        assert "Missing required fields: propertyPrice" in run.toasts[1]["message"]
        assert len(marketplace.calls("PATCH", STATUS)) == 1

    @pytest.mark.asyncio
    async def test_database_error_after_settling_is_reported(
        self, service, marketplace, db_session
    ) -> None:
        with patch.object(
            SettlementInvoiceRepository, "create", side_effect=SQLAlchemyError("disk full")
        ):
            run = await _settle(service)

        assert run.state == SettlementState.ERROR_NOTIFIED.value
        assert run.needs_manual_followup is True
        assert _titles(run)[0] == "Property Settled Successfully"
        assert run.toasts[-1] == {
            "type": "error",
            "title": "Settlement Process Error",
            "message": "Property status updated, but there was an issue with the settlement "
            "process. Please check manually.",
        }
        assert len(marketplace.calls("PATCH", STATUS)) == 1
        assert marketplace.calls("POST", MESSAGES) == []
        assert db_session.query(SettlementInvoice).count() == 0

    @pytest.mark.asyncio
    async def test_unexpected_error_after_settling_is_reported(self, service, marketplace) -> None:
        with patch.object(
            service.invoice_service, "generate", AsyncMock(side_effect=RuntimeError("boom"))
        ):
            run = await _settle(service)

        assert run.state == SettlementState.ERROR_NOTIFIED.value
        assert run.needs_manual_followup is True
        assert run.toasts[-1]["title"] == "Settlement Process Error"
        assert len(marketplace.calls("PATCH", STATUS)) == 1
        assert marketplace.calls("POST", MESSAGES) == []


class TestSelectBuyer:
    @pytest.mark.asyncio
    async def test_select_buyer_continues_settlement(self, service, marketplace) -> None:
        marketplace.on("GET", BUYERS, (200, {"success": True, "data": [BUYER_ONE, BUYER_TWO]}))
        waiting = await _settle(service)

        run = await service.select_buyer(waiting.id, "buyer-0002")

        assert run is not None
        assert run.state == SettlementState.DONE.value
        assert run.buyer_id == "buyer-0002"
        patch_body = marketplace.body(marketplace.calls("PATCH", STATUS)[0])
        assert patch_body["buyerId"] == "buyer-0002"

    @pytest.mark.asyncio
    async def test_unknown_buyer(self, service, marketplace) -> None:
        marketplace.on("GET", BUYERS, (200, {"success": True, "data": [BUYER_ONE, BUYER_TWO]}))
        waiting = await _settle(service)

        with pytest.raises(ValueError, match="not a candidate"):
            await service.select_buyer(waiting.id, "buyer-9999")
        assert marketplace.calls("PATCH", STATUS) == []

    @pytest.mark.asyncio
    async def test_run_not_waiting(self, service) -> None:
        done = await _settle(service)

        with pytest.raises(SettlementConflictError):
            await service.select_buyer(done.id, "buyer-0001")

    @pytest.mark.asyncio
    async def test_run_not_found(self, service) -> None:
        assert await service.select_buyer(uuid4(), "buyer-0001") is None

    @pytest.mark.asyncio
    async def test_concurrent_selection_loses(self, service, marketplace) -> None:
        marketplace.on("GET", BUYERS, (200, {"success": True, "data": [BUYER_ONE, BUYER_TWO]}))
        waiting = await _settle(service)

        other = db_module.SessionLocal()
        try:
            assert SettlementRunRepository(other).claim(
                waiting.id,
                SettlementState.AWAITING_BUYER_SELECTION,
                SettlementState.UPDATING_STATUS,
            )
        finally:
            other.close()

        with pytest.raises(SettlementConflictError):
            await service.select_buyer(waiting.id, "buyer-0002")
        assert marketplace.calls("PATCH", STATUS) == []


class TestStatusUpdate:
    @pytest.mark.asyncio
    async def test_non_settled_status(self, service, marketplace) -> None:
        run = await service.change_status(
            agent_id=AGENT_ID, property_id=PROPERTY_ID, new_status="contract-exchanged"
        )

        assert run.state == SettlementState.DONE.value
        assert marketplace.body(marketplace.calls("PATCH", STATUS)[0]) == {
            "status": "contract-exchanged"
        }
        assert marketplace.calls("GET", BUYERS) == []
        assert run.toasts == [
            {
                "type": "success",
                "title": "Status Updated Successfully",
                "message": "Property status updated to Contract Exchanged",
            }
        ]
        assert service.store.get(PROPERTY_ID).sales_status == "contract-exchanged"

    @pytest.mark.asyncio
    async def test_platform_invoice_is_captured(self, service, marketplace) -> None:
        platform_invoice = {"generated": True, "invoiceNumber": "PLT-1", "amount": 5500}
        marketplace.on(
            "PATCH", STATUS, (200, {"success": True, "data": {"platformInvoice": platform_invoice}})
        )

        run = await service.change_status(
            agent_id=AGENT_ID, property_id=PROPERTY_ID, new_status="unconditional"
        )

        assert run.platform_invoice == platform_invoice
        assert run.toasts[0]["message"] == "Invoice for A$5,500.00 created and sent to seller."

    @pytest.mark.asyncio
    async def test_status_update_failure(self, service, marketplace) -> None:
        marketplace.on("PATCH", STATUS, (403, {"message": "Not your listing"}))

        run = await service.change_status(
            agent_id=AGENT_ID, property_id=PROPERTY_ID, new_status="unconditional"
        )

        assert run.state == SettlementState.ERROR_NOTIFIED.value
        assert run.toasts == [
            {"type": "error", "title": "Status Update Failed", "message": "Not your listing"}
        ]
        assert service.store.get(PROPERTY_ID).sales_status == "unconditional"


class TestClaim:
    def test_only_first_claim_wins(self, db_session) -> None:
        repo = SettlementRunRepository(db_session)
        run = repo.create(property_id=PROPERTY_ID, agent_id=AGENT_ID, requested_status="settled")
        run.state = SettlementState.AWAITING_BUYER_SELECTION.value  # type: ignore[assignment]
        repo.save(run)

        states = (SettlementState.AWAITING_BUYER_SELECTION, SettlementState.UPDATING_STATUS)
        assert repo.claim(run.id, *states) is True
        assert repo.claim(run.id, *states) is False
        db_session.refresh(run)
        assert run.state == SettlementState.UPDATING_STATUS.value
