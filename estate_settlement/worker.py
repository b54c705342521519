import logging
from typing import Any
from uuid import UUID

from arq import cron

from estate_settlement.core.config import settings
from estate_settlement.core.database import SessionLocal
from estate_settlement.models.settlement_invoice import PaymentRecordStatus, SettlementInvoice
from estate_settlement.repositories.settlement_invoice_repository import (
    SettlementInvoiceRepository,
)
from estate_settlement.services.backend_client import BackendClient
from estate_settlement.services.email_service import EmailService
from estate_settlement.services.settlement_invoice_service import SettlementInvoiceService
from estate_settlement.tasks import redis_settings

logger = logging.getLogger(__name__)


def _retryable(invoice: SettlementInvoice | None) -> bool:
    return (
        invoice is not None
        and invoice.payment_record_status == PaymentRecordStatus.FAILED.value
        and int(invoice.payment_record_attempts or 0) < settings.PAYMENT_RECORD_WORKER_MAX_ATTEMPTS
    )


async def retry_payment_records_task(ctx: dict[str, Any], invoice_id: str | None = None) -> int:
    """Background task: re-create backend payment records that failed at settlement.

    Runs every 15 minutes over every failed invoice still under
    ``PAYMENT_RECORD_WORKER_MAX_ATTEMPTS``, or on demand for one invoice.
    """
    db = SessionLocal()
    try:
        repo = SettlementInvoiceRepository(db)
        if invoice_id is not None:
            invoice = repo.get_by_id(UUID(invoice_id))
            invoices = [invoice] if invoice is not None and _retryable(invoice) else []
        else:
            invoices = repo.get_failed_payment_records(settings.PAYMENT_RECORD_WORKER_MAX_ATTEMPTS)
        if not invoices:
            return 0

        count = 0
        async with BackendClient() as backend:
            service = SettlementInvoiceService(db, backend)
            for invoice in invoices:
                if await service.create_payment_record(invoice) is not None:
                    count += 1
        if count > 0:
            logger.info("Created %d payment records on retry", count)
        return count
    finally:
        db.close()


async def resend_settlement_emails_task(ctx: dict[str, Any]) -> int:
    """Background task: resend settlement invoice emails that were not delivered.

    Runs hourly.
    """
    db = SessionLocal()
    try:
        repo = SettlementInvoiceRepository(db)
        email_service = EmailService()
        count = 0
        for invoice in repo.get_unsent_emails():
            if await email_service.send_settlement_invoice_email(invoice):
                repo.set_email_sent(invoice, True)
                count += 1
        if count > 0:
            logger.info("Resent %d settlement invoice emails", count)
        return count
    finally:
        db.close()


class WorkerSettings:
    functions = [
        retry_payment_records_task,
        resend_settlement_emails_task,
    ]
    cron_jobs = [
        cron(retry_payment_records_task, minute={0, 15, 30, 45}),  # every 15 minutes
        cron(resend_settlement_emails_task, minute={30}),  # hourly
    ]
    redis_settings = redis_settings
