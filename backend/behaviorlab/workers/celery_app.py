from celery import Celery

from behaviorlab.config import settings

celery_app = Celery(
    "behaviorlab",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["behaviorlab.workers.experiment_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    timezone="UTC",
)
