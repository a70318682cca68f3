"""
Appointment reminder background service.

WHAT: Periodically finds booked appointments that start soon and records
that a reminder went out.

WHY: Missed appointments cost chair time. Patients who have reminders
enabled should hear about their appointment once, in time to reschedule.

HOW: APScheduler calls send_due_reminders() every
REMINDER_CHECK_INTERVAL_SECONDS:
1. Query scheduled/confirmed appointments starting within
   APPOINTMENT_REMINDER_MAX_HOURS that have not been reminded
2. Skip patients who switched reminders off or whose own lead time
   (APPOINTMENT_REMINDER_HOURS unless they chose one) has not begun yet
3. Increment reminders_sent, stamp last_reminder_sent and log the reminder

Delivery (email, SMS, WhatsApp) is out of scope; the log line is the
hand-off point for a notifier.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.dao.appointment import AppointmentDAO
from app.dao.patient import PatientDAO
from app.db.session import AsyncSessionLocal
from app.models.appointment import Appointment
from app.models.patient import Patient


logger = logging.getLogger(__name__)


REMINDER_CHECK_INTERVAL_SECONDS = settings.REMINDER_CHECK_INTERVAL_SECONDS


def wants_reminder(patient: Optional[Patient], appointment: Appointment, now: datetime) -> bool:
    """
    Check the patient's reminder settings against the appointment time.

    A patient without settings gets the clinic default.
    """
    if patient is None or not patient.is_active or patient.is_deleted:
        return False
    settings_ = (patient.preferences or {}).get("reminder_settings") or {}
    if not settings_.get("enable_reminders", True):
        return False
    lead_hours = settings_.get("reminder_time") or settings.APPOINTMENT_REMINDER_HOURS
    return appointment.appointment_datetime - now <= timedelta(hours=lead_hours)


class AppointmentReminderService:
    """
    Background service for appointment reminders.

    Example:
        service = AppointmentReminderService()
        stats = await service.send_due_reminders()
    """

    def __init__(self, session_factory: Optional[Callable[[], AsyncSession]] = None):
        """
        Args:
            session_factory: Factory for database sessions. Defaults to the
                application's AsyncSessionLocal.
        """
        self._session_factory = session_factory or AsyncSessionLocal

    async def send_due_reminders(self, now: Optional[datetime] = None) -> dict:
        """
        Main job function: record reminders for upcoming appointments.

        Returns:
            Dict with counts of checked, reminded and skipped appointments
        """
        logger.info("Starting appointment reminder job")
        start_time = datetime.utcnow()
        now = now or start_time
        # Widest lead time any patient may pick; wants_reminder narrows it per patient
        horizon = timedelta(hours=settings.APPOINTMENT_REMINDER_MAX_HOURS)

        stats = {"checked": 0, "reminded": 0, "skipped": 0, "errors": 0}

        session = self._session_factory()
        try:
            appointments = await AppointmentDAO(session).get_due_for_reminder(now, horizon)
            patients = PatientDAO(session)
            stats["checked"] = len(appointments)

            for appointment in appointments:
                try:
                    patient = await patients.get_by_id(appointment.patient_id)
                    if not wants_reminder(patient, appointment, now):
                        stats["skipped"] += 1
                        continue

                    appointment.reminders_sent = (appointment.reminders_sent or 0) + 1
                    appointment.last_reminder_sent = now
                    stats["reminded"] += 1
                    logger.info(
                        "Appointment reminder due",
                        extra={
                            "appointment_id": appointment.id,
                            "appointment_code": appointment.appointment_code,
                            "patient_id": appointment.patient_id,
                            "doctor_id": appointment.doctor_id,
                            "appointment_datetime": appointment.appointment_datetime.isoformat(),
                            "channel": (patient.preferences or {}).get("communication_method", "email"),
                        },
                    )
                except Exception as e:
                    logger.error(f"Error processing reminder for appointment {appointment.id}: {e}")
                    stats["errors"] += 1

            await session.commit()

        except Exception as e:
            logger.error(f"Error in appointment reminder job: {e}")
            await session.rollback()
            raise

        finally:
            await session.close()

        elapsed = (datetime.utcnow() - start_time).total_seconds()
        logger.info(
            f"Appointment reminder job completed in {elapsed:.2f}s. "
            f"Reminded: {stats['reminded']}, Skipped: {stats['skipped']}, Errors: {stats['errors']}"
        )
        return stats


_reminder_service: Optional[AppointmentReminderService] = None


def get_reminder_service() -> AppointmentReminderService:
    """Get or create the reminder service instance."""
    global _reminder_service
    if _reminder_service is None:
        _reminder_service = AppointmentReminderService()
    return _reminder_service
