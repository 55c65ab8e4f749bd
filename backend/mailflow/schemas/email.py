"""Pydantic schemas for the email pipeline wire formats

Domain events and queue messages travel as camelCase JSON.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class EmailPriority(str, Enum):
    """Advisory delivery priority of a queued email"""
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"


class RejectionReason(str, Enum):
    """Why the orchestrator chose not to (or could not) queue an email"""
    INVALID_REQUEST = "INVALID_REQUEST"
    UNAUTHORIZED = "UNAUTHORIZED"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    NO_MAPPING = "NO_MAPPING"
    OPTED_OUT = "OPTED_OUT"
    DUPLICATE_SUPPRESSED = "DUPLICATE_SUPPRESSED"
    RATE_LIMITED = "RATE_LIMITED"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DomainEvent(CamelModel):
    """Something happened to a user that may warrant an email"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    event_type: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    event_data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: Optional[datetime] = None


class EmailData(CamelModel):
    to: str
    from_address: str = Field(alias="from")
    subject: str
    template_data: Dict[str, Any] = Field(default_factory=dict)


class EmailQueueMessage(CamelModel):
    """Unit of work handed from the orchestrator to the queue consumer"""
    message_id: str = Field(min_length=1)
    email_type: str = Field(min_length=1)
    user_id: str
    data: EmailData
    priority: EmailPriority = EmailPriority.NORMAL
    created_at: str
    retry_count: int = 0

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class OrchestrationResult(CamelModel):
    """Outcome of processing one domain event"""
    success: bool
    reason: Optional[RejectionReason] = None
    message: Optional[str] = None
    email_type: Optional[str] = None
    queued_at: Optional[str] = None

    def to_response(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class QueueRecord(BaseModel):
    """A message received from the queue, with its per-receive handle"""
    receipt_handle: str
    message_id: str
    body: str
    receive_count: int = 1


class BatchItemFailure(CamelModel):
    item_identifier: str


class BatchResult(CamelModel):
    """Per-batch outcome; only failed items are redelivered"""
    batch_item_failures: List[BatchItemFailure] = Field(default_factory=list)
    successful: int = 0
    failed: int = 0


class WebhookEventData(BaseModel):
    model_config = ConfigDict(extra="allow")

    email_id: Optional[str] = None
    to: Optional[Any] = None
    subject: Optional[str] = None
    created_at: Optional[str] = None


class WebhookEvent(BaseModel):
    """Resend delivery-status callback"""
    model_config = ConfigDict(extra="allow")

    type: str
    id: Optional[str] = None
    created_at: Optional[str] = None
    data: WebhookEventData = Field(default_factory=WebhookEventData)
