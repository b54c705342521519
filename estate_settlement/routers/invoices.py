from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from estate_settlement.core.database import get_db
from estate_settlement.models.settlement_invoice import (
    PaymentRecordStatus,
    SettlementInvoiceStatus,
)
from estate_settlement.repositories.settlement_invoice_repository import (
    SettlementInvoiceRepository,
)
from estate_settlement.schemas.settlement_invoice import (
    GenerateSettlementResponse,
    MissingFieldsResponse,
    SettlementInvoiceRequest,
    SettlementInvoiceResponse,
)
from estate_settlement.services.backend_client import BackendClient, get_backend_client
from estate_settlement.services.email_service import EmailService, get_email_service
from estate_settlement.services.pdf_service import PdfService
from estate_settlement.services.settlement_invoice_service import (
    MissingFieldsError,
    SettlementInvoiceService,
)
from estate_settlement.tasks import enqueue_payment_record_retry, enqueue_settlement_email_resend

router = APIRouter()


@router.post(
    "/generate-settlement",
    response_model=GenerateSettlementResponse,
    status_code=201,
    summary="Generate settlement invoice",
    responses={
        400: {"model": MissingFieldsResponse, "description": "Missing or invalid fields"},
    },
)
async def generate_settlement_invoice(
    data: SettlementInvoiceRequest,
    db: Session = Depends(get_db),
    backend: BackendClient = Depends(get_backend_client),
    email_service: EmailService = Depends(get_email_service),
) -> GenerateSettlementResponse | JSONResponse:
    """Compute, store and dispatch the seller's commission invoice for a settlement.

    The backend payment record and the seller email are best-effort: when
    either fails the invoice is still returned, with ``paymentRecord`` null or
    ``emailSent`` false.
    """
    service = SettlementInvoiceService(db, backend, email_service=email_service)
    try:
        result = await service.generate(data)
    except MissingFieldsError as e:
        body = MissingFieldsResponse(message=str(e), missing_fields=e.fields)
        return JSONResponse(status_code=400, content=body.model_dump(by_alias=True))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None

    return GenerateSettlementResponse(
        message="Settlement invoice generated and sent successfully",
        data=result,
    )


@router.get(
    "",
    response_model=list[SettlementInvoiceResponse],
    summary="List settlement invoices",
)
async def list_invoices(
    response: Response,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    property_id: str | None = Query(default=None, alias="propertyId"),
    seller_id: str | None = Query(default=None, alias="sellerId"),
    agent_id: str | None = Query(default=None, alias="agentId"),
    status: SettlementInvoiceStatus | None = None,
    order_by: str | None = Query(default=None, alias="orderBy"),
    db: Session = Depends(get_db),
) -> list[SettlementInvoiceResponse]:
    """List settlement invoices with optional filters."""
    repo = SettlementInvoiceRepository(db)
    response.headers["X-Total-Count"] = str(
        repo.count(property_id=property_id, seller_id=seller_id, agent_id=agent_id, status=status)
    )
    invoices = repo.get_all(
        skip=skip,
        limit=limit,
        property_id=property_id,
        seller_id=seller_id,
        agent_id=agent_id,
        status=status,
        order_by=order_by,
    )
    return [SettlementInvoiceResponse.from_model(i) for i in invoices]


@router.get(
    "/{invoice_id}",
    response_model=SettlementInvoiceResponse,
    summary="Get settlement invoice",
    responses={404: {"description": "Invoice not found"}},
)
async def get_invoice(
    invoice_id: UUID,
    db: Session = Depends(get_db),
) -> SettlementInvoiceResponse:
    invoice = SettlementInvoiceRepository(db).get_by_id(invoice_id)
    if not invoice:
        raise HTTPException(status_code=404, detail="Invoice not found")
    return SettlementInvoiceResponse.from_model(invoice)


@router.get(
    "/{invoice_id}/pdf",
    summary="Download settlement invoice PDF",
    responses={
        200: {"content": {"application/pdf": {}}},
        404: {"description": "Invoice not found"},
    },
)
async def download_invoice_pdf(
    invoice_id: UUID,
    db: Session = Depends(get_db),
) -> Response:
    """Render the settlement invoice as a PDF attachment."""
    invoice = SettlementInvoiceRepository(db).get_by_id(invoice_id)
    if not invoice:
        raise HTTPException(status_code=404, detail="Invoice not found")

    pdf_bytes = PdfService().generate_settlement_invoice_pdf(invoice)
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'attachment; filename="Invoice-{invoice.invoice_number}.pdf"'
        },
    )


@router.post(
    "/{invoice_id}/mark-paid",
    response_model=SettlementInvoiceResponse,
    summary="Mark settlement invoice as paid",
    responses={
        400: {"description": "Invoice is already paid"},
        404: {"description": "Invoice not found"},
    },
)
async def mark_invoice_paid(
    invoice_id: UUID,
    db: Session = Depends(get_db),
) -> SettlementInvoiceResponse:
    """Record that the seller paid the commission invoice in full."""
    try:
        invoice = SettlementInvoiceRepository(db).mark_paid(invoice_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    if not invoice:
        raise HTTPException(status_code=404, detail="Invoice not found")
    return SettlementInvoiceResponse.from_model(invoice)


@router.post(
    "/resend-emails",
    status_code=202,
    summary="Enqueue settlement email resend",
    description="Enqueue a background task to resend every undelivered invoice email.",
)
async def enqueue_email_resend() -> dict[str, str]:
    job = await enqueue_settlement_email_resend()
    return {"jobId": job.job_id}


@router.post(
    "/{invoice_id}/retry-payment-record",
    status_code=202,
    summary="Enqueue payment record retry",
    responses={
        400: {"description": "Payment record is not in a failed state"},
        404: {"description": "Invoice not found"},
    },
)
async def enqueue_payment_record(
    invoice_id: UUID,
    db: Session = Depends(get_db),
) -> dict[str, str]:
    """Queue another attempt at mirroring the invoice into the backend payment records."""
    invoice = SettlementInvoiceRepository(db).get_by_id(invoice_id)
    if not invoice:
        raise HTTPException(status_code=404, detail="Invoice not found")
    if invoice.payment_record_status != PaymentRecordStatus.FAILED.value:
        raise HTTPException(
            status_code=400,
            detail=f"Payment record is {invoice.payment_record_status}, not failed",
        )
    job = await enqueue_payment_record_retry(invoice_id)
    return {"jobId": job.job_id}
