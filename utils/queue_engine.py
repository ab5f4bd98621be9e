# utils/queue_engine.py - Promotion engine and queue mutations
"""
Who sits in the chair and who is Up Next.

``PromotionEngine.enforce`` is the single place the "fill the Up Next slot"
rule lives. Every mutation below ends by calling it inside the same
transaction, and hands the entries it promoted back to the caller so
notifications can be dispatched after commit.

Lock order is always the barber row first, then queue rows. ``enforce`` takes
the barber lock itself, so two requests for the same barber never run the
engine at the same time; the partial unique indexes on ``queue_entries`` are
the backstop if something bypasses this module.
"""
import logging
from typing import List, Optional, Tuple
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from repository.barbers import BarberRepo, ServiceRepo
from repository.queue import QueueRepo
from tables.queue_entries import (
    QueueEntry, WAITING, UP_NEXT, IN_PROGRESS, DONE, CANCELLED, REMOVABLE_STATUSES
)
from tables.services_completed import CompletedService
from tables.users import Users
from utils.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class PromotionEngine:

    @staticmethod
    def enforce(db: Session, barber_id: int) -> List[QueueEntry]:
        """
        Re-derive the barber's lane from the store and fill Up Next.

        Returns the entries that became Up Next during this call (zero or
        one). Running it again without an intervening mutation is a no-op.
        Does not commit.
        """
        BarberRepo.lock(db, barber_id)

        up_next = QueueRepo.up_next(db, barber_id)
        candidate = QueueRepo.top_waiting(db, barber_id)

        if candidate is None:
            return []

        if up_next is None:
            logger.info(
                f"[QueueLogic] Barber {barber_id}: Up Next empty, promoting #{candidate.id} "
                f"({'VIP' if candidate.is_vip else 'regular'})"
            )
        elif not up_next.is_vip and candidate.is_vip:
            logger.info(f"[QueueLogic] Barber {barber_id}: VIP #{candidate.id} bumps regular #{up_next.id}")
            # Back to Waiting at its original created_at, so it keeps its place in line.
            # It will be notified again when it is promoted again.
            demoted = QueueRepo.transition(db, up_next.id, (UP_NEXT,), status=WAITING, notified_up_next=False)
            db.expire(up_next)
            if not demoted:
                logger.warning(f"[QueueLogic] Barber {barber_id}: #{up_next.id} left Up Next before the bump")
                return []
        else:
            return []

        if not QueueRepo.transition(db, candidate.id, (WAITING,), status=UP_NEXT):
            logger.warning(f"[QueueLogic] Barber {barber_id}: #{candidate.id} left Waiting before promotion")
            return []

        db.refresh(candidate)
        return [candidate]


def _enforce_and_commit(db: Session, barber_id: int) -> List[QueueEntry]:
    """Fill Up Next and commit; a partial unique index violation surfaces as ConflictError"""
    try:
        promoted = PromotionEngine.enforce(db, barber_id)
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning(f"[QueueLogic] Barber {barber_id}: concurrent queue write rejected by the store")
        raise ConflictError("The queue changed while saving. Refresh and try again.")
    return promoted


class QueueService:

    @staticmethod
    def join(
        db: Session,
        barber_id: int,
        service_id: int,
        customer_name: str,
        customer_phone: Optional[str] = None,
        customer_email: Optional[str] = None,
        head_count: int = 1,
        is_vip: bool = False,
        user_id: Optional[int] = None,
        reference_image_url: Optional[str] = None,
        push_token: Optional[str] = None,
    ) -> Tuple[QueueEntry, List[QueueEntry]]:
        """Add a walk-in. The new entry may leave this call already Up Next."""
        customer_name = (customer_name or "").strip()
        if not customer_name:
            raise ValidationError("Customer name is required.")
        if head_count is None or head_count < 1:
            raise ValidationError("Head count must be at least 1.")

        barber = BarberRepo.lock(db, barber_id)
        if barber is None:
            raise ValidationError(f"Unknown barber {barber_id}.")
        if not barber.is_available:
            raise ConflictError("This barber is not accepting customers right now.")
        if ServiceRepo.get_active(db, service_id) is None:
            raise ValidationError(f"Unknown service {service_id}.")

        if user_id is not None:
            active = QueueRepo.active_for_user(db, user_id)
            if active is not None:
                logger.warning(f"User {user_id} blocked from joining: already in queue (entry #{active.id})")
                raise ConflictError(
                    "You already have an active booking.",
                    details={"id": active.id, "status": active.status, "barber_id": active.barber_id}
                )

        entry = QueueEntry(
            barber_id=barber_id,
            service_id=service_id,
            user_id=user_id,
            customer_name=customer_name,
            customer_phone=customer_phone,
            customer_email=customer_email,
            head_count=head_count,
            is_vip=bool(is_vip),
            status=WAITING,
            reference_image_url=reference_image_url,
            push_token=push_token,
        )

        try:
            QueueRepo.insert(db, entry)
            promoted = PromotionEngine.enforce(db, barber_id)
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.warning(f"Join for user {user_id} rejected by the store: concurrent active entry")
            raise ConflictError("You already have an active booking.")

        db.refresh(entry)
        logger.info(f"[Join] Entry #{entry.id} for barber {barber_id} joined with status {entry.status}")
        return entry, promoted

    @staticmethod
    def call_next(db: Session, barber_id: int, queue_id: int) -> Tuple[QueueEntry, List[QueueEntry]]:
        """Put ``queue_id`` in the chair and backfill Up Next."""
        BarberRepo.lock(db, barber_id)

        entry = QueueRepo.get_for_barber(db, barber_id, queue_id)
        if entry is None or entry.status not in (WAITING, UP_NEXT):
            raise NotFoundError(f"Queue entry #{queue_id} is not waiting for barber {barber_id}.")

        occupant = QueueRepo.in_progress(db, barber_id)
        if occupant is not None:
            raise ConflictError(
                "Finish the current customer before calling the next one.",
                details={"in_progress_id": occupant.id}
            )

        try:
            called = QueueRepo.call_to_chair(db, barber_id, queue_id)
        except IntegrityError:
            called = False
        if not called:
            db.rollback()
            raise ConflictError("The chair was just taken or the entry changed. Refresh and try again.")

        promoted = _enforce_and_commit(db, barber_id)
        db.refresh(entry)

        logger.info(f"[Next] Barber {barber_id} called #{queue_id} into the chair")
        return entry, promoted

    @staticmethod
    def complete_cut(
        db: Session,
        barber_id: int,
        queue_id: int,
        tip_amount: float = 0,
        vip_charge: float = 0,
    ) -> Tuple[QueueEntry, CompletedService, List[QueueEntry]]:
        """Finish the cut in the chair; the Done transition and its ledger row commit together."""
        if tip_amount is None or tip_amount < 0 or vip_charge is None or vip_charge < 0:
            raise ValidationError("Tip and VIP charge must be zero or more.")

        BarberRepo.lock(db, barber_id)

        entry = QueueRepo.get_for_barber(db, barber_id, queue_id)
        if entry is None or entry.status != IN_PROGRESS:
            raise NotFoundError(f"Queue entry #{queue_id} is not in the chair for barber {barber_id}.")

        head_count = entry.head_count or 1
        unit_price = entry.service.price if entry.service else 0
        total = unit_price * head_count + tip_amount + vip_charge

        if not QueueRepo.transition(db, queue_id, (IN_PROGRESS,), status=DONE):
            db.rollback()
            raise NotFoundError(f"Queue entry #{queue_id} is no longer in the chair.")

        ledger = CompletedService(
            barber_id=barber_id,
            queue_entry_id=queue_id,
            price=total,
            head_count=head_count,
            tip_amount=tip_amount,
            vip_charge=vip_charge,
        )
        db.add(ledger)

        promoted = _enforce_and_commit(db, barber_id)
        db.refresh(entry)
        db.refresh(ledger)

        logger.info(f"[Complete] Barber {barber_id} finished #{queue_id}, logged {total:.2f}")
        return entry, ledger, promoted

    @staticmethod
    def cancel(db: Session, barber_id: int, queue_id: int) -> List[QueueEntry]:
        """Barber marks a waiting customer as cancelled / no-show."""
        BarberRepo.lock(db, barber_id)

        entry = QueueRepo.get_for_barber(db, barber_id, queue_id)
        if entry is None or not QueueRepo.transition(db, queue_id, REMOVABLE_STATUSES, status=CANCELLED):
            db.rollback()
            raise NotFoundError(f"Queue entry #{queue_id} is not waiting for barber {barber_id}.")

        promoted = _enforce_and_commit(db, barber_id)

        logger.info(f"[Cancel] Barber {barber_id} cancelled #{queue_id}")
        return promoted

    @staticmethod
    def delete_if_owner(db: Session, queue_id: int, requesting_user_id: Optional[int]) -> List[QueueEntry]:
        """Customer leaves the queue. Only the owner may remove an entry."""
        entry = QueueRepo.get(db, queue_id)
        if entry is None or entry.status not in REMOVABLE_STATUSES:
            raise NotFoundError("Entry not found or already in progress.")

        if requesting_user_id is None or entry.user_id != requesting_user_id:
            logger.warning(
                f"[SECURITY] User {requesting_user_id} tried to remove queue entry #{queue_id} "
                f"owned by {entry.user_id}. DENIED."
            )
            raise AuthorizationError("You are not authorized to remove this entry.")

        barber_id = entry.barber_id
        BarberRepo.lock(db, barber_id)

        if not QueueRepo.transition(db, queue_id, REMOVABLE_STATUSES, status=CANCELLED):
            db.rollback()
            raise NotFoundError("Entry not found or already in progress.")

        promoted = _enforce_and_commit(db, barber_id)

        logger.info(f"[Leave] User {requesting_user_id} left queue entry #{queue_id}")
        return promoted

    @staticmethod
    def confirm_attendance(db: Session, queue_id: int, requesting_user_id: Optional[int]) -> QueueEntry:
        """Customer acknowledges they are on the way."""
        entry = QueueRepo.get(db, queue_id)
        if entry is None or entry.status not in REMOVABLE_STATUSES:
            raise NotFoundError(f"Queue entry #{queue_id} is not waiting.")
        if requesting_user_id is None or entry.user_id != requesting_user_id:
            raise AuthorizationError("You are not authorized to confirm this entry.")

        if not QueueRepo.transition(db, queue_id, REMOVABLE_STATUSES, is_confirmed=True):
            db.rollback()
            raise NotFoundError(f"Queue entry #{queue_id} is not waiting.")
        db.commit()
        db.refresh(entry)

        logger.info(f"[Confirm] Customer for queue #{queue_id} is on the way")
        return entry


def require_barber_owner(db: Session, barber_id: int, user: Users):
    """The acting user must own the barber profile (admins may act for any barber)"""
    barber = BarberRepo.get(db, barber_id)
    if barber is None:
        raise NotFoundError(f"Barber {barber_id} not found.")
    if not user.is_admin and barber.user_id != user.id:
        logger.warning(f"Authorization failed: user {user.id} attempted action on barber {barber_id}")
        raise AuthorizationError("You are not authorized to perform this action.")
    return barber
