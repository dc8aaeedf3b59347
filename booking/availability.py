"""
Availability resolver.

Computes bookable start times for a salon on a given date from its opening
hours, working days, the total duration of the requested services and the
appointments already occupying the calendar.

The resolver is a pure function: the current time is passed in as ``now``
so results are reproducible and testable.
"""

from datetime import date, datetime
from typing import Any, Iterable, List, Mapping, Optional, Tuple

from models.appointment import OCCUPYING_STATUSES, AppointmentStatus
from models.professional import Professional
from models.salon import Salon
from utils.constants import MIN_LEAD_MINUTES, SLOT_STEP_MINUTES
from utils.datetime_utils import format_time_of_day, parse_time_of_day, weekday_index
from utils.exceptions import ValidationError

Interval = Tuple[int, int]


def _get(appointment: Any, field: str, default: Any = None) -> Any:
    if isinstance(appointment, Mapping):
        return appointment.get(field, default)
    return getattr(appointment, field, default)


def salon_window(salon: Salon) -> Interval:
    """
    Opening and closing time of a salon in minutes since midnight.

    Raises:
        ValidationError: If a time is malformed or opening is not before closing
    """
    opening = parse_time_of_day(salon.opening_time)
    closing = parse_time_of_day(salon.closing_time)
    if opening >= closing:
        raise ValidationError(
            f"Opening time {salon.opening_time} must be before closing time {salon.closing_time}"
        )
    return opening, closing


def working_window(
    salon: Salon, on_date: date, professional: Optional[Professional] = None
) -> Optional[Interval]:
    """
    Bookable window for ``on_date``, or None when nobody works that day.

    A professional's own working days and hours narrow the salon's calendar;
    they never extend it.
    """
    opening, closing = salon_window(salon)
    weekday = weekday_index(on_date)

    if weekday not in salon.working_days:
        return None

    if professional is None:
        return opening, closing

    if professional.working_days is not None and weekday not in professional.working_days:
        return None

    if professional.working_hours is not None:
        start = parse_time_of_day(professional.working_hours.start)
        end = parse_time_of_day(professional.working_hours.end)
        opening, closing = max(opening, start), min(closing, end)
        if opening >= closing:
            return None

    return opening, closing


def busy_intervals(
    existing_appointments: Iterable[Any], professional_id: Optional[str] = None
) -> List[Interval]:
    """
    Occupied ``[start, end)`` ranges relevant to ``professional_id``.

    Without a professional every appointment counts. Appointments that are
    not pending/confirmed never block a slot.
    """
    intervals = []
    for appointment in existing_appointments:
        status = _get(appointment, "status", AppointmentStatus.CONFIRMED)
        if status is not None and AppointmentStatus(status) not in OCCUPYING_STATUSES:
            continue
        if professional_id and _get(appointment, "professional_id") != professional_id:
            continue
        start = parse_time_of_day(_get(appointment, "start_time"))
        end = parse_time_of_day(_get(appointment, "end_time"))
        intervals.append((start, end))
    return intervals


def overlaps(start: int, end: int, busy_start: int, busy_end: int) -> bool:
    """Half-open interval intersection; touching ranges do not overlap."""
    return start < busy_end and end > busy_start


def compute_available_slots(
    salon: Salon,
    on_date: date,
    total_duration_minutes: int,
    existing_appointments: Iterable[Any],
    professional_id: Optional[str] = None,
    *,
    professional: Optional[Professional] = None,
    now: Optional[datetime] = None,
    step_minutes: int = SLOT_STEP_MINUTES,
    lead_minutes: int = MIN_LEAD_MINUTES,
) -> List[str]:
    """
    Compute the ordered list of bookable start times (``HH:MM``).

    Args:
        salon: Salon with opening/closing time and working days
        on_date: Date being booked
        total_duration_minutes: Sum of the durations of the requested services
        existing_appointments: Appointments for the salon on that date
            (objects or mappings with start_time, end_time, professional_id
            and optionally status)
        professional_id: Only this professional's appointments block slots
        professional: Professional whose working days/hours narrow the window
        now: Current salon-local wall-clock time; None disables the
            same-day lead time check
        step_minutes: Grid granularity
        lead_minutes: Minimum distance between now and a same-day slot

    Returns:
        Start times in ascending order; empty when nothing is bookable

    Raises:
        ValidationError: If any time string is malformed
    """
    if step_minutes <= 0:
        raise ValidationError(f"Slot step must be positive, got {step_minutes}")

    window = working_window(salon, on_date, professional)
    if window is None or total_duration_minutes <= 0:
        return []

    if professional_id is None and professional is not None:
        professional_id = professional.id

    busy = busy_intervals(existing_appointments, professional_id)

    earliest_start = None
    if now is not None:
        today = now.date()
        if on_date < today:
            return []
        if on_date == today:
            # A started minute counts as a full one
            elapsed = now.hour * 60 + now.minute + (1 if now.second or now.microsecond else 0)
            earliest_start = elapsed + lead_minutes

    opening, closing = window
    slots = []
    start = opening
    while start + total_duration_minutes <= closing:
        end = start + total_duration_minutes
        too_soon = earliest_start is not None and start < earliest_start
        if not too_soon and not any(overlaps(start, end, b_start, b_end) for b_start, b_end in busy):
            slots.append(format_time_of_day(start))
        start += step_minutes

    return slots


def is_slot_available(
    salon: Salon,
    on_date: date,
    start_time: str,
    total_duration_minutes: int,
    existing_appointments: Iterable[Any],
    professional_id: Optional[str] = None,
    **kwargs: Any,
) -> bool:
    """Check a single requested start time against the resolver's output."""
    requested = format_time_of_day(parse_time_of_day(start_time))
    slots = compute_available_slots(
        salon,
        on_date,
        total_duration_minutes,
        existing_appointments,
        professional_id,
        **kwargs,
    )
    return requested in slots


def end_time_for(start_time: str, duration_minutes: int) -> str:
    """``start_time + duration`` as ``HH:MM``."""
    return format_time_of_day(parse_time_of_day(start_time) + duration_minutes)
