# models/queue.py - Queue request and response models
from pydantic import BaseModel, validator
from datetime import datetime
from typing import Optional, List, Union


class JoinQueueRequest(BaseModel):
    barber_id: int
    service_id: int
    customer_name: str
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    head_count: int = 1
    is_vip: bool = False
    reference_image_url: Optional[str] = None
    push_token: Optional[str] = None

    @validator('customer_name')
    def validate_customer_name(cls, v):
        if not v or not v.strip():
            raise ValueError('Customer name is required')
        return v.strip()

    @validator('head_count')
    def validate_head_count(cls, v):
        if v < 1:
            raise ValueError('Head count must be at least 1')
        return v


class CallNextRequest(BaseModel):
    barber_id: int
    queue_id: int


class CompleteCutRequest(BaseModel):
    barber_id: int
    queue_id: int
    tip_amount: float = 0
    vip_charge: float = 0

    @validator('tip_amount', 'vip_charge')
    def validate_non_negative(cls, v):
        if v < 0:
            raise ValueError('Amount cannot be negative')
        return v


class CancelRequest(BaseModel):
    barber_id: int
    queue_id: int


class QueueEntryResponse(BaseModel):
    id: int
    barber_id: int
    service_id: int
    user_id: Optional[int] = None
    customer_name: str
    head_count: int
    is_vip: bool
    status: str
    is_confirmed: bool
    notified_up_next: bool
    reference_image_url: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class CompleteCutResponse(BaseModel):
    entry: QueueEntryResponse
    ledger_id: int
    total_price: float


class NextAppointment(BaseModel):
    id: int
    customer_name: str
    scheduled_time: datetime
    service_name: Optional[str] = None
    duration_minutes: Optional[int] = None


class QueueDetailsResponse(BaseModel):
    waiting: List[QueueEntryResponse]
    in_progress: Optional[QueueEntryResponse] = None
    up_next: Optional[QueueEntryResponse] = None
    next_appointment: Optional[NextAppointment] = None


class PublicQueueItem(BaseModel):
    """One row of the customer-facing board. Ghost rows are masked appointments."""
    id: Union[int, str]
    customer_name: str
    status: str
    is_vip: bool = False
    head_count: int = 1
    duration_minutes: Optional[int] = None
    created_at: datetime
    is_ghost: bool = False
    display_time: Optional[str] = None
