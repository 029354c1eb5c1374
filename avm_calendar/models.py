# models.py
from pydantic import BaseModel, Field
from typing import Literal, Optional, Dict, Any, List

# ---- Common ----
ErrorCode = Literal[
    "invalid_participants",
    "invalid_time_range",
    "not_found",
    "not_organizer",
    "meeting_cancelled",
    "already_cancelled",
]

NotificationKind = Literal[
    "MeetingCreated",
    "MeetingRescheduled",
    "ParticipantAdded",
    "MeetingCancelled",
]

class CommandResult(BaseModel):
    ok: bool
    meeting_id: Optional[int] = None
    error: Optional[ErrorCode] = None
    detail: Optional[str] = None

class ProjectionEvent(BaseModel):
    projection: str
    version: int
    diff: Dict[str, Any]

# ---- Meetings ----
class Meeting(BaseModel):
    id: int
    organizer: str
    participants: List[str]
    date: int
    start_time: int
    end_time: int
    agenda: str
    meet_link: str
    is_cancelled: bool = False

class MeetingNotification(BaseModel):
    kind: NotificationKind
    meeting_id: int
    payload: Dict[str, Any] = Field(default_factory=dict)

class CreateMeetingIn(BaseModel):
    organizer: str
    participants: List[str]
    date: int
    start_time: int
    end_time: int
    agenda: str
    meet_link: str

class RescheduleMeetingIn(BaseModel):
    caller: str
    meeting_id: int
    date: int
    start_time: int
    end_time: int

class AddParticipantsIn(BaseModel):
    caller: str
    meeting_id: int
    participants: List[str]

class CancelMeetingIn(BaseModel):
    caller: str
    meeting_id: int

# ---- Availability / FreeBusy ----
class AvailabilityIn(BaseModel):
    identity: str
    date: int
    start_time: int
    end_time: int

class AvailabilityOut(BaseModel):
    identity: str
    available: bool

class BusyBlock(BaseModel):
    meeting_id: int
    start_time: int
    end_time: int

class FreeBusyIn(BaseModel):
    identities: List[str]
    date: int

class FreeBusyOut(BaseModel):
    busy: Dict[str, List[BusyBlock]]
