"""
Scheduler for appointment reminders using APScheduler.

Every hour, appointments starting within ``reminder_hours_before`` get one
``appointment_reminder`` notification queued with status ``scheduled``. The
managed messaging function delivers queued notifications.
"""

from datetime import datetime, timedelta
from typing import Callable, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from config import settings
from db import get_db_client
from models.appointment import Appointment
from models.notification import (
    Notification,
    NotificationChannel,
    NotificationStatus,
    NotificationType,
)
from utils.datetime_utils import (
    combine_local,
    local_now,
    local_to_utc,
    parse_time_of_day,
)
from utils.exceptions import DatabaseError
from utils.logging_config import setup_logging

logger = setup_logging(name=__name__, log_file="scheduler.log")

scheduler = AsyncIOScheduler(timezone=settings.timezone)


def _starts_at(appointment: Appointment) -> datetime:
    return combine_local(appointment.date, parse_time_of_day(appointment.start_time))


def select_due_appointments(
    appointments: List[Appointment], now: datetime, hours_before: int
) -> List[Appointment]:
    """Appointments starting in ``(now, now + hours_before]``, in start order."""
    horizon = now + timedelta(hours=hours_before)
    due = [a for a in appointments if now < _starts_at(a) <= horizon]
    return sorted(due, key=_starts_at)


def build_reminder(appointment: Appointment, reminder_time: datetime) -> Notification:
    """
    Reminder notification for an appointment, to be sent at ``reminder_time``.

    ``reminder_time`` is salon wall-clock time; ``scheduled_for`` is stored
    in UTC, the clock the messaging function compares it with.
    """
    starts_at = _starts_at(appointment)
    name = appointment.client_name or "there"
    message = (
        f"Hi {name}! Reminder: you have an appointment on "
        f"{starts_at.strftime('%d/%m/%Y')} at {starts_at.strftime('%H:%M')}."
    )
    if settings.public_app_url:
        message += f" Details: {settings.public_app_url.rstrip('/')}"

    return Notification(
        salon_id=appointment.salon_id,
        client_id=appointment.client_id,
        appointment_id=appointment.id,
        type=NotificationType.APPOINTMENT_REMINDER,
        channel=NotificationChannel.WHATSAPP,
        title="Appointment reminder",
        message=message,
        phone=appointment.client_phone,
        status=NotificationStatus.SCHEDULED,
        scheduled_for=local_to_utc(reminder_time, settings.timezone),
    )


async def queue_reminders(
    db=None, clock: Optional[Callable[[], datetime]] = None
) -> int:
    """
    Queue reminders for upcoming appointments that do not have one yet.

    Args:
        db: Store client (global client when omitted)
        clock: Returns the salon-local wall-clock time

    Returns:
        Number of notifications queued
    """
    try:
        db = db or get_db_client()
        now = clock() if clock else local_now(settings.timezone)
        hours_before = settings.reminder_hours_before

        horizon = now + timedelta(hours=hours_before)
        candidates = await db.get_upcoming_appointments(now.date(), horizon.date())
        due = select_due_appointments(candidates, now, hours_before)

        if not due:
            logger.debug("No appointments require reminders at this time")
            return 0

        already_notified = await db.get_notified_appointment_ids(
            [a.id for a in due], NotificationType.APPOINTMENT_REMINDER
        )

        queued = 0
        skipped = 0
        for appointment in due:
            if appointment.id in already_notified:
                skipped += 1
                continue
            if not appointment.client_phone:
                logger.warning(f"Appointment {appointment.id} has no client phone, skipping")
                skipped += 1
                continue

            reminder_time = max(now, _starts_at(appointment) - timedelta(hours=hours_before))
            await db.create_notification(build_reminder(appointment, reminder_time))
            queued += 1

        logger.info(f"Reminder processing complete: {queued} queued, {skipped} skipped")
        return queued

    except DatabaseError as e:
        logger.error(f"Database error queuing reminders: {e}", exc_info=True)
        return 0
    except Exception as e:
        logger.error(f"Unexpected error queuing reminders: {e}", exc_info=True)
        return 0


def setup_scheduler() -> None:
    """Setup and start the scheduler."""
    scheduler.add_job(
        queue_reminders,
        trigger=CronTrigger(minute=0),  # Every hour at minute 0
        id="queue_reminders",
        name="Queue appointment reminders",
        replace_existing=True,
    )

    scheduler.start()
    logger.info("Scheduler started")


def shutdown_scheduler():
    """Shutdown the scheduler."""
    scheduler.shutdown()
    logger.info("Scheduler stopped")
