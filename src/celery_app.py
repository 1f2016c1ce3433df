import os
from celery import Celery
from src.price_engine.schedules.beat import beat_schedule


broker_url = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
result_backend = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")
timezone = os.getenv("CELERY_TIMEZONE", "UTC")

app = Celery(
    "cryptodash",
    broker=broker_url,
    backend=result_backend,
    include=["src.price_engine.tasks.fetch_prices"],
)

app.conf.update(
    enable_utc=True,
    timezone=timezone,
    task_track_started=True,
    task_send_sent_event=True,
    result_expires=60 * 60 * 24,
    # One ingestion at a time per worker; runs are not coordinated otherwise.
    worker_concurrency=int(os.getenv("CELERY_WORKER_CONCURRENCY", "1")),
)

app.conf.beat_schedule = beat_schedule
