"""
Inbound booking webhook endpoints.

WHAT: Bookings pushed by the clinic website's WordPress plugin, the
WhatsApp and SMS gateways, the email parser, Practo and other partner
platforms (/external/{source}).

WHY: Patients book wherever they already are. Every channel ends in the
same AppointmentService booking, tagged with its booking_source, so the
clinic sees one calendar and per-channel statistics.

HOW: No bearer token; every request must carry a valid X-Webhook-Signature
for its raw body (verify_webhook_signature). Messages that carry no
booking details are acknowledged, and WhatsApp or SMS senders asking to
book are sent the booking page link in the reply.
"""

import logging
from typing import Any, Dict, Optional
from fastapi import APIRouter, Body, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.deps import verify_webhook_signature
from app.db.session import get_db
from app.models.appointment import BookingSource
from app.schemas.appointment import AppointmentResponse
from app.schemas.common import APIResponse, api_response
from app.schemas.webhook import (
    ChannelMessage,
    EmailBooking,
    InboundBooking,
    PractoBooking,
    WordPressBooking,
    parse_external,
)
from app.services.audit import AuditService
from app.services.webhook_service import WebhookBookingService, standardize


logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/webhooks",
    tags=["webhooks"],
    dependencies=[Depends(verify_webhook_signature)],
)

BOOKING_REPLY = "To book an appointment, please visit: {url}"


async def _book(
    db: AsyncSession,
    booking: InboundBooking,
    source: BookingSource,
    platform: Optional[str] = None,
) -> Dict[str, Any]:
    result = await WebhookBookingService(db).book(booking, source, platform=platform)
    appointment = result.appointment

    audit = AuditService(db)
    if result.patient_created:
        await audit.log_account_created(
            None,
            "patient",
            result.patient.id,
            {"patient_code": result.patient.patient_code, "booking_source": source.value},
        )
    await audit.log_create(
        None,
        "appointment",
        appointment.id,
        {
            "appointment_code": appointment.appointment_code,
            "doctor_id": appointment.doctor_id,
            "patient_id": appointment.patient_id,
            "booking_source": source.value,
            "platform": platform,
        },
    )
    logger.info(
        "Webhook booking processed",
        extra={"appointment_id": appointment.id, "booking_source": source.value, "platform": platform},
    )
    return {
        "appointment": AppointmentResponse.model_validate(appointment),
        "confirmation_code": appointment.appointment_code,
        "patient_created": result.patient_created,
    }


async def _channel_message(
    db: AsyncSession,
    message: ChannelMessage,
    source: BookingSource,
    keyword: str,
) -> APIResponse:
    booking = standardize(message.to_booking)
    if booking is not None:
        data = await _book(db, booking, source)
        return api_response(data, message="Appointment booked successfully")

    reply = None
    if message.mentions(keyword):
        reply = BOOKING_REPLY.format(url=settings.BOOKING_URL)
        logger.info("Booking link requested", extra={"booking_source": source.value})
    return api_response({"booked": False, "reply": reply}, message="Message received")


@router.post("/wordpress", response_model=APIResponse, summary="WordPress plugin booking")
async def wordpress_booking(
    data: WordPressBooking,
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """
    Book from the website plugin's form.

    Raises:
        AuthenticationError (401): Missing, stale or invalid signature
        ValidationError (400): Invalid patient details or a past time
        SlotUnavailableError (409): Doctor away that day or slot taken
    """
    booking = standardize(data.to_booking)
    result = await _book(db, booking, BookingSource.WEBSITE, platform="wordpress")
    return api_response(result, message="Appointment booked successfully via WordPress")


@router.post("/whatsapp", response_model=APIResponse, summary="WhatsApp message")
async def whatsapp_message(
    data: ChannelMessage,
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """Book from details collected by the WhatsApp bot, or reply with the booking link."""
    return await _channel_message(db, data, BookingSource.WHATSAPP, keyword="book appointment")


@router.post("/sms", response_model=APIResponse, summary="SMS message")
async def sms_message(
    data: ChannelMessage,
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    return await _channel_message(db, data, BookingSource.SMS, keyword="book")


@router.post("/email", response_model=APIResponse, summary="Email booking")
async def email_booking(
    data: EmailBooking,
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """
    Book from an email the parser could structure.

    Unstructured emails are acknowledged without booking so the front desk
    can answer them by hand.
    """
    booking = standardize(data.to_booking)
    if booking is None:
        logger.info("Unstructured booking email received", extra={"subject": data.subject[:100]})
        return api_response({"booked": False}, message="Email received")
    result = await _book(db, booking, BookingSource.EMAIL)
    return api_response(result, message="Appointment booked successfully")


@router.post("/practo", response_model=APIResponse, summary="Practo booking")
async def practo_booking(
    data: PractoBooking,
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    booking = standardize(data.to_booking)
    result = await _book(db, booking, BookingSource.THIRD_PARTY, platform="practo")
    return api_response(result, message="Appointment booked successfully")


@router.post("/external/{source}", response_model=APIResponse, summary="Partner platform booking")
async def external_booking(
    source: str = Path(..., pattern=r"^[a-z0-9-]{2,30}$", description="Partner name, e.g. zocdoc"),
    payload: Dict[str, Any] = Body(...),
    db: AsyncSession = Depends(get_db),
) -> APIResponse:
    """
    Book from any partner platform.

    WHY: Zocdoc and Lybrate send their own formats; other partners use the
    generic field names (camelCase or snake_case).

    Raises:
        ValidationError (400): Missing patient, doctor or time
    """
    booking = standardize(lambda: parse_external(source, payload))
    result = await _book(db, booking, BookingSource.THIRD_PARTY, platform=source)
    return api_response(result, message="Appointment booked successfully")
