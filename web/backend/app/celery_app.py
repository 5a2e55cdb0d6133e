"""Конфигурация Celery"""
from celery import Celery
from celery.schedules import crontab

from app.config import settings

celery_app = Celery(
    "salon_marketplace",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["app.tasks.coupons"]
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=30 * 60,  # 30 минут
    task_soft_time_limit=25 * 60,  # 25 минут
    worker_prefetch_multiplier=1,
)

# Расписание периодических задач
celery_app.conf.beat_schedule = {
    "deactivate-expired-coupons": {
        "task": "app.tasks.coupons.deactivate_expired_coupons_task",
        "schedule": crontab(minute=0),  # Каждый час
    },
}
