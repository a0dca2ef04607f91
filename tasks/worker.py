"""Celery application for background document rendering."""

from __future__ import annotations

import ssl
from pathlib import Path
from typing import Any

import structlog
from celery import Celery, signals
from kombu import Queue

from app.backend.src.core.config import get_settings

LOGGER = structlog.get_logger(__name__)
PROJECT_ROOT = Path(__file__).resolve().parents[1]

RENDER_QUEUE = "documents"

settings = get_settings()


def _redis_ssl_options(ca_cert_path: str | None) -> dict[str, Any]:
    """Return TLS options for ``rediss://`` connections.

    Relative CA paths are resolved against the project root. When the file is
    missing the system trust store is used.
    """

    options: dict[str, Any] = {"ssl_cert_reqs": ssl.CERT_REQUIRED}
    if not ca_cert_path:
        return options

    candidate = Path(ca_cert_path).expanduser()
    if not candidate.is_absolute():
        candidate = PROJECT_ROOT / candidate
    if candidate.is_file():
        options["ssl_ca_certs"] = str(candidate)
    else:
        LOGGER.warning("redis_ca_certificate_missing", resolved_path=str(candidate))
    return options


celery = Celery(
    "smartinvoice",
    broker=settings.broker_url,
    backend=settings.result_backend,
    include=["tasks.invoice_tasks"],
)
celery.conf.update(
    task_default_queue=RENDER_QUEUE,
    task_queues=(Queue(RENDER_QUEUE),),
    task_routes={"tasks.render_invoice_documents": {"queue": RENDER_QUEUE}},
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    worker_prefetch_multiplier=1,
    broker_connection_retry_on_startup=True,
)

if settings.broker_url.startswith("rediss://") or settings.result_backend.startswith("rediss://"):
    ssl_options = _redis_ssl_options(settings.redis_ca_cert_path)
    if settings.broker_url.startswith("rediss://"):
        celery.conf.broker_use_ssl = ssl_options
    if settings.result_backend.startswith("rediss://"):
        celery.conf.redis_backend_use_ssl = ssl_options

# Registers the task definitions for workers started from any entrypoint.
from . import invoice_tasks  # noqa: F401,E402  # isort: skip


@signals.worker_ready.connect
def _log_worker_ready(sender: Any | None = None, **_: Any) -> None:
    app = sender.app if sender is not None else celery
    LOGGER.info(
        "celery_worker_ready",
        queue=app.conf.task_default_queue,
        tasks=sorted(name for name in app.tasks if name.startswith("tasks.")),
    )


__all__ = ["celery", "RENDER_QUEUE"]
