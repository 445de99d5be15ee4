"""Celery 任务基础设施：对账任务与 beat 调度。"""
from .config.celery import celery_app

__all__ = ["celery_app"]
