# routes/queue.py - Live walk-in queue
import logging
from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session
from typing import List, Optional
from config import get_db, get_session_factory
from models.queue import (
    JoinQueueRequest, CallNextRequest, CompleteCutRequest, CancelRequest,
    QueueEntryResponse, CompleteCutResponse, QueueDetailsResponse, PublicQueueItem
)
from repository.users import get_current_user, get_optional_user
from tables.users import Users
from utils.notification_service import NotificationService
from utils.queue_engine import QueueService, require_barber_owner
from utils.queue_views import queue_details, public_queue


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/queue", tags=["Queue"])

def schedule_notifications(background_tasks: BackgroundTasks, session_factory, promoted):
    """Notify newly promoted entries after the response is sent"""
    if promoted:
        background_tasks.add_task(
            NotificationService.dispatch_promoted,
            session_factory,
            [entry.id for entry in promoted]
        )

@router.post("", response_model=QueueEntryResponse)
def join_queue(
    req: JoinQueueRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    session_factory=Depends(get_session_factory),
    current_user: Optional[Users] = Depends(get_optional_user)
):
    """Join a barber's queue. Walk-ins may join without an account."""
    entry, promoted = QueueService.join(
        db,
        barber_id=req.barber_id,
        service_id=req.service_id,
        customer_name=req.customer_name,
        customer_phone=req.customer_phone,
        customer_email=req.customer_email or (current_user.email if current_user else None),
        head_count=req.head_count,
        is_vip=req.is_vip,
        user_id=current_user.id if current_user else None,
        reference_image_url=req.reference_image_url,
        push_token=req.push_token,
    )
    schedule_notifications(background_tasks, session_factory, promoted)
    return QueueEntryResponse.from_orm(entry)

@router.put("/{queue_id}/confirm", response_model=QueueEntryResponse)
def confirm_attendance(
    queue_id: int,
    db: Session = Depends(get_db),
    current_user: Users = Depends(get_current_user)
):
    entry = QueueService.confirm_attendance(db, queue_id, current_user.id)
    return QueueEntryResponse.from_orm(entry)

@router.put("/next", response_model=QueueEntryResponse)
def call_next(
    req: CallNextRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    session_factory=Depends(get_session_factory),
    current_user: Users = Depends(get_current_user)
):
    """Barber calls a waiting customer into the chair"""
    require_barber_owner(db, req.barber_id, current_user)
    entry, promoted = QueueService.call_next(db, req.barber_id, req.queue_id)
    schedule_notifications(background_tasks, session_factory, promoted)
    return QueueEntryResponse.from_orm(entry)

@router.post("/complete", response_model=CompleteCutResponse)
def complete_cut(
    req: CompleteCutRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    session_factory=Depends(get_session_factory),
    current_user: Users = Depends(get_current_user)
):
    require_barber_owner(db, req.barber_id, current_user)
    entry, ledger, promoted = QueueService.complete_cut(
        db, req.barber_id, req.queue_id, req.tip_amount, req.vip_charge
    )
    schedule_notifications(background_tasks, session_factory, promoted)
    return CompleteCutResponse(
        entry=QueueEntryResponse.from_orm(entry),
        ledger_id=ledger.id,
        total_price=ledger.price,
    )

@router.put("/cancel")
def cancel_entry(
    req: CancelRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    session_factory=Depends(get_session_factory),
    current_user: Users = Depends(get_current_user)
):
    """Barber marks a customer as no-show"""
    require_barber_owner(db, req.barber_id, current_user)
    promoted = QueueService.cancel(db, req.barber_id, req.queue_id)
    schedule_notifications(background_tasks, session_factory, promoted)
    return {"message": "Customer cancelled", "queue_id": req.queue_id}

@router.delete("/{queue_id}")
def leave_queue(
    queue_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    session_factory=Depends(get_session_factory),
    current_user: Users = Depends(get_current_user)
):
    """Customer removes their own entry"""
    promoted = QueueService.delete_if_owner(db, queue_id, current_user.id)
    schedule_notifications(background_tasks, session_factory, promoted)
    return {"message": "Removed from queue", "queue_id": queue_id}

@router.get("/details/{barber_id}", response_model=QueueDetailsResponse)
def get_queue_details(
    barber_id: int,
    db: Session = Depends(get_db),
    current_user: Users = Depends(get_current_user)
):
    require_barber_owner(db, barber_id, current_user)
    return queue_details(db, barber_id)

@router.get("/public/{barber_id}", response_model=List[PublicQueueItem])
def get_public_queue(barber_id: int, db: Session = Depends(get_db)):
    return public_queue(db, barber_id)
