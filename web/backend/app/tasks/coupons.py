"""Фоновые задачи для купонов"""
import asyncio
import logging

from celery import shared_task

from app.database import get_async_session_maker
from app.services.coupon_service import deactivate_expired_coupons

logger = logging.getLogger(__name__)


async def run_coupon_cleanup() -> int:
    """Деактивировать истекшие купоны в отдельной сессии"""
    async_session_maker = get_async_session_maker()
    async with async_session_maker() as session:
        return await deactivate_expired_coupons(session)


@shared_task(name="app.tasks.coupons.deactivate_expired_coupons_task")
def deactivate_expired_coupons_task():
    """Celery задача для деактивации истекших купонов"""
    logger.info("Запуск задачи: deactivate_expired_coupons_task")
    try:
        return asyncio.run(run_coupon_cleanup())
    except Exception as e:
        logger.error(f"Ошибка в задаче deactivate_expired_coupons_task: {e}", exc_info=True)
        raise
