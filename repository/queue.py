# repository/queue.py - Store primitives for queue entries
from typing import Iterable, List, Optional
from sqlalchemy.orm import Session, aliased
from sqlalchemy import and_, select
from tables.queue_entries import (
    QueueEntry, WAITING, UP_NEXT, IN_PROGRESS, CANCELLED, ACTIVE_STATUSES
)


class QueueRepo:
    """
    Every status change goes through ``transition`` or ``call_to_chair``:
    single UPDATE statements guarded by the expected current status, so a
    concurrent writer that got there first makes the call match zero rows
    instead of overwriting its work.
    """

    @staticmethod
    def get(db: Session, entry_id: int) -> Optional[QueueEntry]:
        return db.query(QueueEntry).filter(QueueEntry.id == entry_id).first()

    @staticmethod
    def get_for_barber(db: Session, barber_id: int, entry_id: int) -> Optional[QueueEntry]:
        return db.query(QueueEntry).filter(
            and_(QueueEntry.id == entry_id, QueueEntry.barber_id == barber_id)
        ).first()

    @staticmethod
    def up_next(db: Session, barber_id: int) -> Optional[QueueEntry]:
        return db.query(QueueEntry).filter(
            and_(QueueEntry.barber_id == barber_id, QueueEntry.status == UP_NEXT)
        ).first()

    @staticmethod
    def in_progress(db: Session, barber_id: int) -> Optional[QueueEntry]:
        return db.query(QueueEntry).filter(
            and_(QueueEntry.barber_id == barber_id, QueueEntry.status == IN_PROGRESS)
        ).first()

    @staticmethod
    def waiting_query(db: Session, barber_id: int):
        """Waiting entries, VIPs first, then first come first served"""
        return db.query(QueueEntry).filter(
            and_(QueueEntry.barber_id == barber_id, QueueEntry.status == WAITING)
        ).order_by(
            QueueEntry.is_vip.desc(),
            QueueEntry.created_at.asc(),
            QueueEntry.id.asc()
        )

    @staticmethod
    def waiting(db: Session, barber_id: int) -> List[QueueEntry]:
        return QueueRepo.waiting_query(db, barber_id).all()

    @staticmethod
    def top_waiting(db: Session, barber_id: int) -> Optional[QueueEntry]:
        return QueueRepo.waiting_query(db, barber_id).first()

    @staticmethod
    def active_for_barber(db: Session, barber_id: int) -> List[QueueEntry]:
        return db.query(QueueEntry).filter(
            and_(QueueEntry.barber_id == barber_id, QueueEntry.status.in_(ACTIVE_STATUSES))
        ).order_by(
            QueueEntry.is_vip.desc(),
            QueueEntry.created_at.asc(),
            QueueEntry.id.asc()
        ).all()

    @staticmethod
    def active_for_user(db: Session, user_id: int) -> Optional[QueueEntry]:
        return db.query(QueueEntry).filter(
            and_(QueueEntry.user_id == user_id, QueueEntry.status.in_(ACTIVE_STATUSES))
        ).first()

    @staticmethod
    def insert(db: Session, entry: QueueEntry) -> QueueEntry:
        """Add and flush so the id is assigned; the caller owns the commit"""
        db.add(entry)
        db.flush()
        return entry

    @staticmethod
    def transition(db: Session, entry_id: int, from_statuses: Iterable[str], **values) -> bool:
        """Conditional update: apply ``values`` only if status is still one of ``from_statuses``"""
        matched = db.query(QueueEntry).filter(
            and_(QueueEntry.id == entry_id, QueueEntry.status.in_(tuple(from_statuses)))
        ).update(values, synchronize_session=False)
        return matched == 1

    @staticmethod
    def call_to_chair(db: Session, barber_id: int, entry_id: int) -> bool:
        """Move an entry In Progress only if nobody else holds this barber's chair"""
        others = aliased(QueueEntry)
        chair_taken = select(others.id).where(
            and_(others.barber_id == barber_id, others.status == IN_PROGRESS)
        ).exists()

        matched = db.query(QueueEntry).filter(
            and_(
                QueueEntry.id == entry_id,
                QueueEntry.barber_id == barber_id,
                QueueEntry.status.in_((WAITING, UP_NEXT)),
                ~chair_taken
            )
        ).update({"status": IN_PROGRESS}, synchronize_session=False)
        return matched == 1

    @staticmethod
    def pending_notifications(db: Session, limit: int = 100) -> List[QueueEntry]:
        return db.query(QueueEntry).filter(
            and_(QueueEntry.status == UP_NEXT, QueueEntry.notified_up_next == False)
        ).order_by(QueueEntry.id).limit(limit).all()

    @staticmethod
    def mark_notified(db: Session, entry_id: int) -> bool:
        return QueueRepo.transition(db, entry_id, (UP_NEXT,), notified_up_next=True)

    @staticmethod
    def cancel_open_entries(db: Session) -> int:
        return db.query(QueueEntry).filter(
            QueueEntry.status.in_((WAITING, UP_NEXT))
        ).update({"status": CANCELLED}, synchronize_session=False)
