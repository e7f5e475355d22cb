"""
Pharmacy — Celery Tasks

@file pharmacy/tasks.py
"""

import logging

from celery import shared_task

logger = logging.getLogger('mediklinik')


@shared_task(name='pharmacy.refresh_batch_statuses')
def refresh_batch_statuses_task():
    """
    Daily: flag batches whose expiry date has passed as ``expired``.
    Stock reads already ignore them by date; this keeps the stored status
    in line for lists and the admin.
    """
    from .services import StockService

    count = StockService.refresh_expired_batches()
    logger.info('refresh_batch_statuses_task completed: %d batches expired.', count)
    return {'expired_count': count}
