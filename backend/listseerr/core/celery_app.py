from celery import Celery
from listseerr.core.config import settings

celery_app = Celery("worker", broker=settings.REDIS_URL, backend=settings.REDIS_URL)

celery_app.conf.update(task_track_started=True)

# Automatic list processing runs in the API process scheduler, not in beat
celery_app.conf.beat_schedule = {
    'refresh-anime-ids-daily': {
        'task': 'listseerr.tasks.processing.refresh_anime_ids_task',
        'schedule': 24 * 3600.0,
    },
}
celery_app.conf.timezone = settings.TIMEZONE

# Import tasks to register them
from listseerr.tasks import processing  # noqa
