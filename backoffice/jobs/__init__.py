"""
Background Jobs Module

Handles scheduled tasks for:
- Overdue invoice sweep and receivable/payable aging
"""

from backoffice.jobs.scheduler import scheduler, start_scheduler, shutdown_scheduler
from backoffice.jobs.overdue_sweep import run_overdue_sweep

__all__ = [
    "scheduler",
    "start_scheduler",
    "shutdown_scheduler",
    "run_overdue_sweep",
]
