from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from estate_settlement.core.database import get_db
from estate_settlement.repositories.settlement_run_repository import SettlementRunRepository
from estate_settlement.schemas.property import PropertyAssignment
from estate_settlement.schemas.settlement import (
    BuyerSelectionRequest,
    SettlementRunResponse,
    StatusChangeRequest,
)
from estate_settlement.services.assignment_store import AssignmentStore, get_assignment_store
from estate_settlement.services.backend_client import BackendClient, get_backend_client
from estate_settlement.services.email_service import EmailService, get_email_service
from estate_settlement.services.settlement_invoice_service import SettlementInvoiceService
from estate_settlement.services.settlement_service import (
    SettlementConflictError,
    SettlementService,
)

# Mounted under /api/agents
agents_router = APIRouter()

# Mounted under /api/settlements
router = APIRouter()


def get_settlement_service(
    db: Session = Depends(get_db),
    backend: BackendClient = Depends(get_backend_client),
    store: AssignmentStore = Depends(get_assignment_store),
    email_service: EmailService = Depends(get_email_service),
) -> SettlementService:
    invoice_service = SettlementInvoiceService(db, backend, email_service=email_service)
    return SettlementService(db, backend, store, invoice_service=invoice_service)


@agents_router.post(
    "/{agent_id}/properties/{property_id}/status",
    response_model=SettlementRunResponse,
    summary="Change property sales status",
)
async def change_property_status(
    agent_id: str,
    property_id: str,
    data: StatusChangeRequest,
    service: SettlementService = Depends(get_settlement_service),
) -> SettlementRunResponse:
    """Apply a sales-status change on behalf of an agent.

    Always answers 200: the outcome of each step, including failures, is
    reported through the run's ``state``, ``steps`` and ``toasts``. A settled
    property with more than one interested buyer comes back in
    ``awaiting-buyer-selection``.
    """
    run = await service.change_status(
        agent_id=agent_id,
        property_id=property_id,
        new_status=data.status,
        agent_name=data.agent_name,
        details=data.settlement_details,
    )
    return SettlementRunResponse.model_validate(run)


@agents_router.get(
    "/{agent_id}/assignments",
    response_model=list[PropertyAssignment],
    summary="List agent property assignments",
)
async def list_assignments(
    agent_id: str,
    backend: BackendClient = Depends(get_backend_client),
    store: AssignmentStore = Depends(get_assignment_store),
) -> list[PropertyAssignment]:
    return await store.ensure_loaded(agent_id, backend)


@agents_router.post(
    "/{agent_id}/assignments/refresh",
    response_model=list[PropertyAssignment],
    summary="Reload agent property assignments",
)
async def refresh_assignments(
    agent_id: str,
    backend: BackendClient = Depends(get_backend_client),
    store: AssignmentStore = Depends(get_assignment_store),
) -> list[PropertyAssignment]:
    return await store.load(agent_id, backend)


@router.get(
    "/{run_id}",
    response_model=SettlementRunResponse,
    summary="Get settlement run",
    responses={404: {"description": "Settlement not found"}},
)
async def get_settlement(
    run_id: UUID,
    db: Session = Depends(get_db),
) -> SettlementRunResponse:
    run = SettlementRunRepository(db).get_by_id(run_id)
    if not run:
        raise HTTPException(status_code=404, detail="Settlement not found")
    return SettlementRunResponse.model_validate(run)


@router.post(
    "/{run_id}/select-buyer",
    response_model=SettlementRunResponse,
    summary="Select buyer and continue settlement",
    responses={
        400: {"description": "Buyer is not a candidate for this settlement"},
        404: {"description": "Settlement not found"},
        409: {"description": "Settlement is not awaiting buyer selection"},
    },
)
async def select_buyer(
    run_id: UUID,
    data: BuyerSelectionRequest,
    service: SettlementService = Depends(get_settlement_service),
) -> SettlementRunResponse:
    """Resume a settlement paused because several buyers were interested."""
    try:
        run = await service.select_buyer(run_id, data.buyer_id)
    except SettlementConflictError as e:
        raise HTTPException(status_code=409, detail=str(e)) from None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    if not run:
        raise HTTPException(status_code=404, detail="Settlement not found")
    return SettlementRunResponse.model_validate(run)
