"""Celery application bootstrap."""

from __future__ import annotations

import logging
from typing import Any, Dict

from celery import Celery
from celery.schedules import crontab

from .settings import JobSchedule, Settings, get_settings
from .utils.logging import configure_logging

_CELERY_APP: Celery | None = None

TASK_NAMES: Dict[str, str] = {
    "fetch_news": "ingestion.tasks.fetch.fetch_and_store_news",
    "homepage": "homepage.tasks.generate.generate_homepage_content",
}
TASK_QUEUES: Dict[str, str] = {
    "fetch_news": "news.fetch",
    "homepage": "news.homepage",
}


def create_celery_app(settings: Settings | None = None) -> Celery:
    """Build a Celery instance from settings."""
    config = settings or get_settings()
    configure_logging(config.structlog_level, json_enabled=config.log_json)

    app = Celery(
        "plotwist",
        broker=config.redis_url,
        backend=config.redis_url,
        include=["ingestion.tasks.fetch", "homepage.tasks.generate"],
    )
    app.conf.update(
        task_default_queue="news.default",
        task_default_exchange="news",
        task_default_routing_key="news.default",
        task_soft_time_limit=config.celery_task_soft_time_limit,
        worker_concurrency=config.celery_worker_concurrency,
        beat_schedule=_build_beat_schedule(config),
        timezone="UTC",
        enable_utc=True,
        worker_send_task_events=True,
        task_send_sent_event=True,
    )

    _install_signal_handlers(app)
    return app


def get_celery_app() -> Celery:
    """Return the process-wide Celery instance."""
    global _CELERY_APP
    if _CELERY_APP is None:
        _CELERY_APP = create_celery_app()
    return _CELERY_APP


def _build_beat_schedule(settings: Settings) -> Dict[str, Dict[str, Any]]:
    schedule: Dict[str, Dict[str, Any]] = {}
    for item in settings.job_schedules:
        if not item.enabled:
            continue
        schedule[item.name] = {
            "task": TASK_NAMES[item.task],
            "schedule": _to_crontab(item),
            "options": {"queue": TASK_QUEUES[item.task]},
        }
    return schedule


def _to_crontab(item: JobSchedule) -> crontab:
    minute, hour, day_of_month, month_of_year, day_of_week = item.cron.split()
    return crontab(
        minute=minute,
        hour=hour,
        day_of_month=day_of_month,
        month_of_year=month_of_year,
        day_of_week=day_of_week,
    )


def _install_signal_handlers(app: Celery) -> None:
    from celery import signals

    logger = logging.getLogger("ingestion.worker")

    @signals.worker_shutdown.connect(weak=False)  # type: ignore[attr-defined]
    def _on_worker_shutdown(sender=None, **kwargs):  # noqa: ANN001
        logger.info("worker.shutdown", extra={"sender": str(sender)})
