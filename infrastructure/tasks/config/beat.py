"""Celery beat 周期任务"""
from __future__ import annotations

from typing import Any, Dict, Optional

from core.settings import PaymentSettings, payment_settings

RECONCILE_TASK = "payments.reconcile_stale"


def build_beat_schedule(settings: Optional[PaymentSettings] = None) -> Dict[str, Dict[str, Any]]:
    settings = settings or payment_settings
    return {
        "reconcile-stale-payments": {
            "task": RECONCILE_TASK,
            "schedule": float(settings.reconciliation.interval_seconds),
            "options": {"queue": "payments"},
        },
    }
