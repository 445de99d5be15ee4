from .celery import celery_app
from .beat import build_beat_schedule

__all__ = ["celery_app", "build_beat_schedule"]
