from typing import Any
from uuid import UUID

from arq import create_pool
from arq.connections import ArqRedis, RedisSettings
from arq.jobs import Job

from estate_settlement.core.config import settings

# Redis connection settings
redis_settings = RedisSettings.from_dsn(settings.REDIS_URL)


async def get_redis_pool() -> ArqRedis:
    """Get or create Redis pool for arq"""
    return await create_pool(redis_settings)


async def enqueue_task(task_name: str, *args: Any, **kwargs: Any) -> Job:
    """
    Enqueue a task to the arq worker.

    Args:
        task_name: Name of the task function
        *args: Positional arguments for the task
        **kwargs: Keyword arguments for the task

    Returns:
        Job object from arq
    """
    pool = await get_redis_pool()
    try:
        job = await pool.enqueue_job(task_name, *args, **kwargs)
        return job  # type: ignore[return-value]
    finally:
        await pool.close()


async def enqueue_payment_record_retry(invoice_id: UUID | None = None) -> Job:
    """Enqueue a payment-record retry for one invoice, or every failed one."""
    if invoice_id is None:
        return await enqueue_task("retry_payment_records_task")
    return await enqueue_task("retry_payment_records_task", str(invoice_id))


async def enqueue_settlement_email_resend() -> Job:
    return await enqueue_task("resend_settlement_emails_task")
