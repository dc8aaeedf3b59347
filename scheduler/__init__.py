"""Task scheduler for appointment reminders."""

from .reminders import queue_reminders, setup_scheduler, shutdown_scheduler

__all__ = ["queue_reminders", "setup_scheduler", "shutdown_scheduler"]
