# utils/notification_service.py - Up Next notifications with at-least-once delivery
"""
An entry is flagged ``notified_up_next`` only after its dispatch succeeded.
Dispatch right after a promotion is best effort; ``sweep`` picks up whatever
is still Up Next and unflagged, so a failed send is retried on the next run.
"""
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from repository.appointments import AppointmentRepo
from repository.queue import QueueRepo
from tables.queue_entries import QueueEntry, UP_NEXT
from utils import email_webhook
from utils.errors import DownstreamFailure
from utils.firebase_service import FirebaseService
from utils.shop_time import to_shop_local

logger = logging.getLogger(__name__)


def up_next_context(entry: QueueEntry) -> Dict[str, Any]:
    barber_name = entry.barber.full_name if entry.barber else "your barber"
    service = entry.service
    return {
        "barber_name": barber_name,
        "service_name": service.name if service else "your service",
        "duration": service.duration_minutes if service else None,
    }


def _load_pending(db: Session, entry_id: int) -> Tuple[Optional[QueueEntry], Optional[Dict[str, Any]]]:
    entry = QueueRepo.get(db, entry_id)
    if entry is None or entry.status != UP_NEXT or entry.notified_up_next:
        return None, None
    return entry, up_next_context(entry)


def _flag_notified(db: Session, entry: QueueEntry) -> bool:
    # Entry may have been bumped or called while we were sending.
    if not QueueRepo.mark_notified(db, entry.id):
        db.rollback()
        logger.info(f"[Notify] Entry #{entry.id} left Up Next during dispatch")
        return False
    db.commit()
    db.expire(entry)
    return True


def _pending_ids(db: Session) -> List[int]:
    return [entry.id for entry in QueueRepo.pending_notifications(db)]


class UpNextDispatcher:
    """Sends the "you're next" message by email and push. Raises DownstreamFailure."""

    async def notify(self, entry: QueueEntry, context: Dict[str, Any]) -> None:
        if entry.customer_email and email_webhook.is_configured():
            await email_webhook.post_event({
                "type": "up_next",
                "email": entry.customer_email,
                "name": entry.customer_name,
                "barberName": context["barber_name"],
                "serviceName": context["service_name"],
                "duration": context["duration"],
            })
            logger.info(f"[Notify] Up Next email sent for entry #{entry.id}")

        if entry.push_token:
            result = await FirebaseService.send_notification(
                token=entry.push_token,
                title="You're up next!",
                body=f"Head to the shop, {context['barber_name']} is almost ready for you.",
                data={"type": "up_next", "queue_id": entry.id},
            )
            if result.get("success"):
                logger.info(f"[Notify] Up Next push sent for entry #{entry.id}")
            elif result.get("error") == "not_configured" or result.get("should_remove"):
                # Retrying cannot help these; count the entry as handled.
                logger.warning(f"[Notify] Push skipped for entry #{entry.id}: {result.get('error')}")
            else:
                raise DownstreamFailure(f"Push failed for entry #{entry.id}: {result.get('error')}")


default_dispatcher = UpNextDispatcher()


class NotificationService:

    @staticmethod
    async def process_up_next(db: Session, entry_id: int, dispatcher: Optional[UpNextDispatcher] = None) -> bool:
        """Notify one Up Next entry. True only if it was sent and flagged by this call."""
        dispatcher = dispatcher or default_dispatcher

        # Store work runs in the threadpool so a held row lock never stalls the event loop.
        entry, context = await run_in_threadpool(_load_pending, db, entry_id)
        if entry is None:
            return False

        try:
            await dispatcher.notify(entry, context)
        except DownstreamFailure as e:
            logger.error(f"[Notify] Up Next delivery failed for entry #{entry_id}, will retry: {e.message}")
            return False

        return await run_in_threadpool(_flag_notified, db, entry)

    @staticmethod
    async def dispatch_promoted(
        session_factory: Callable[[], Session],
        entry_ids: Iterable[int],
        dispatcher: Optional[UpNextDispatcher] = None,
    ) -> None:
        """Background task run after a mutation commits; opens its own session"""
        db = session_factory()
        try:
            for entry_id in entry_ids:
                try:
                    await NotificationService.process_up_next(db, entry_id, dispatcher)
                except Exception as e:
                    db.rollback()
                    logger.error(f"[Notify] Unexpected error notifying entry #{entry_id}: {e}")
        finally:
            db.close()

    @staticmethod
    async def sweep(db: Session, dispatcher: Optional[UpNextDispatcher] = None) -> int:
        """Retry every Up Next entry that has not been notified yet"""
        pending = await run_in_threadpool(_pending_ids, db)
        if not pending:
            return 0

        sent = 0
        for entry_id in pending:
            if await NotificationService.process_up_next(db, entry_id, dispatcher):
                sent += 1

        logger.info(f"[Sweep] Notified {sent} of {len(pending)} pending Up Next entries")
        return sent


def _barber_alert_event(db: Session, appointment_id: int) -> Optional[Dict[str, Any]]:
    appointment = AppointmentRepo.get(db, appointment_id)
    barber = appointment.barber if appointment else None
    if barber is None or barber.user is None or not barber.user.email:
        return None
    return {
        "type": "barber_alert",
        "email": barber.user.email,
        "barberName": barber.full_name,
        "customerName": appointment.customer_name,
        "serviceName": appointment.service.name if appointment.service else None,
        "scheduledTime": to_shop_local(appointment.scheduled_time).isoformat(),
    }


def _cancellation_event(db: Session, appointment_id: int) -> Optional[Dict[str, Any]]:
    appointment = AppointmentRepo.get(db, appointment_id)
    if appointment is None or not appointment.customer_email:
        return None
    return {
        "type": "cancellation",
        "email": appointment.customer_email,
        "name": appointment.customer_name,
        "barberName": appointment.barber.full_name if appointment.barber else None,
        "scheduledTime": to_shop_local(appointment.scheduled_time).isoformat(),
        "reason": appointment.cancellation_reason,
    }


class AppointmentNotifier:
    """Fire-and-forget emails around appointments. Failures are logged, never retried."""

    @staticmethod
    async def barber_alert(session_factory: Callable[[], Session], appointment_id: int) -> None:
        db = session_factory()
        try:
            event = await run_in_threadpool(_barber_alert_event, db, appointment_id)
            if event is None:
                return
            await email_webhook.post_event(event)
            logger.info(f"[Notify] Barber alerted about appointment #{appointment_id}")
        except DownstreamFailure as e:
            logger.error(f"[Notify] Barber alert for appointment #{appointment_id} failed: {e.message}")
        finally:
            db.close()

    @staticmethod
    async def cancellation(session_factory: Callable[[], Session], appointment_id: int) -> None:
        db = session_factory()
        try:
            event = await run_in_threadpool(_cancellation_event, db, appointment_id)
            if event is None:
                return
            await email_webhook.post_event(event)
            logger.info(f"[Notify] Cancellation sent for appointment #{appointment_id}")
        except DownstreamFailure as e:
            logger.error(f"[Notify] Cancellation email for appointment #{appointment_id} failed: {e.message}")
        finally:
            db.close()
