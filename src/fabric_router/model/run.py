"""
Models for remote conversation sessions and runs.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class RunStatus(str, Enum):
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    REQUIRES_ACTION = "requires_action"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"

    @property
    def is_active(self) -> bool:
        return self in (RunStatus.QUEUED, RunStatus.IN_PROGRESS, RunStatus.REQUIRES_ACTION)

    @property
    def is_terminal(self) -> bool:
        return not self.is_active


class Session(BaseModel):
    """Handle for one remote conversation thread."""
    id: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class PendingCall(BaseModel):
    """A function call the remote run is waiting on."""
    id: str
    function_name: str
    arguments_json: str = "{}"


class ToolOutput(BaseModel):
    """Result of one pending call, submitted back to the run."""
    call_id: str
    result_text: str


class Run(BaseModel):
    """Snapshot of a remote run."""
    id: str
    session_id: str
    status: RunStatus
    pending_calls: list[PendingCall] = Field(default_factory=list)
    last_error: Optional[str] = None
