# avm.py
from __future__ import annotations
import asyncio
from typing import Dict, Any, List

import structlog

from avm_calendar import config
from avm_calendar.errors import SchedulingError
from avm_calendar.models import (
    ProjectionEvent, CommandResult, Meeting, MeetingNotification,
    CreateMeetingIn, RescheduleMeetingIn, AddParticipantsIn, CancelMeetingIn,
    AvailabilityIn, AvailabilityOut, FreeBusyIn, FreeBusyOut, BusyBlock,
)
from avm_calendar.services import MeetingStore

logger = structlog.get_logger(__name__)


def meeting_projection(meeting_id: int) -> str:
    return f"meeting:{meeting_id}"

def identity_projection(identity: str) -> str:
    return f"identity:{identity}"


class Projection:
    def __init__(self, projection_id: str):
        self.id = projection_id
        self.version = 0
        self.snapshot: Dict[str, Any] = {}
        self.subscribers: List[asyncio.Queue] = []

class ProjectionStore:
    """Versioned views fed by meeting notifications.

    ``publish`` is the notification sink handed to ``MeetingStore``. Each
    notification updates ``meeting:<id>`` and ``identity:<identity>`` for every
    identity the change concerns. A subscriber whose queue fills up is dropped
    and its queue ends with a single ``None``.
    """

    def __init__(self, queue_size: int | None = None):
        self._p: Dict[str, Projection] = {}
        self._lock = asyncio.Lock()
        self._queue_size = config.SUBSCRIBER_QUEUE_SIZE if queue_size is None else queue_size

    def get(self, projection_id: str) -> Projection:
        return self._p.setdefault(projection_id, Projection(projection_id))

    async def subscribe(self, projection_id: str) -> asyncio.Queue:
        async with self._lock:
            proj = self.get(projection_id)
            q: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
            proj.subscribers.append(q)
            q.put_nowait(ProjectionEvent(projection=proj.id, version=proj.version, diff=dict(proj.snapshot)))
            return q

    def unsubscribe(self, projection_id: str, q: asyncio.Queue) -> None:
        proj = self._p.get(projection_id)
        if proj is not None and q in proj.subscribers:
            proj.subscribers.remove(q)

    def _apply(self, projection_id: str, diff: Dict[str, Any]) -> ProjectionEvent:
        proj = self.get(projection_id)
        proj.version += 1
        proj.snapshot.update(diff)
        ev = ProjectionEvent(projection=proj.id, version=proj.version, diff=diff)
        for q in list(proj.subscribers):
            try:
                q.put_nowait(ev)
            except asyncio.QueueFull:
                proj.subscribers.remove(q)
                self._close(q)
                logger.warning("subscriber_dropped", projection=proj.id, version=proj.version)
        return ev

    @staticmethod
    def _close(q: asyncio.Queue) -> None:
        # pending events are stale once one is missed; None tells the reader to hang up
        while not q.empty():
            q.get_nowait()
        q.put_nowait(None)

    def publish(self, n: MeetingNotification) -> None:
        key = meeting_projection(n.meeting_id)
        snap = self.get(key).snapshot
        if n.kind == "MeetingCreated":
            diff = {"meeting_id": n.meeting_id, "status": "Scheduled", **n.payload}
            parties = [n.payload["organizer"], *n.payload["participants"]]
        elif n.kind == "MeetingRescheduled":
            diff = dict(n.payload)
            parties = [snap.get("organizer"), *snap.get("participants", [])]
        elif n.kind == "ParticipantAdded":
            diff = {"participants": [*snap.get("participants", []), n.payload["participant"]]}
            parties = [n.payload["participant"]]
        else:
            diff = {"status": "Cancelled"}
            parties = [snap.get("organizer"), *snap.get("participants", [])]
        self._apply(key, diff)
        for ident in dict.fromkeys(p for p in parties if p is not None):
            self._apply(identity_projection(ident), {"meeting_id": n.meeting_id, "event": n.kind})


class AgentViewModel:
    def __init__(self, meetings: MeetingStore, proj: ProjectionStore):
        self.mt = meetings
        self.proj = proj

    # ---- commands ----
    async def meeting_create(self, a: CreateMeetingIn) -> CommandResult:
        try:
            meeting_id = self.mt.create_meeting(
                a.organizer, a.participants, a.date, a.start_time, a.end_time, a.agenda, a.meet_link)
        except SchedulingError as exc:
            return CommandResult(ok=False, error=exc.code, detail=str(exc))
        return CommandResult(ok=True, meeting_id=meeting_id)

    async def meeting_reschedule(self, a: RescheduleMeetingIn) -> CommandResult:
        try:
            self.mt.reschedule_meeting(a.caller, a.meeting_id, a.date, a.start_time, a.end_time)
        except SchedulingError as exc:
            return CommandResult(ok=False, meeting_id=a.meeting_id, error=exc.code, detail=str(exc))
        return CommandResult(ok=True, meeting_id=a.meeting_id)

    async def meeting_add_participants(self, a: AddParticipantsIn) -> CommandResult:
        try:
            self.mt.add_participants(a.caller, a.meeting_id, a.participants)
        except SchedulingError as exc:
            return CommandResult(ok=False, meeting_id=a.meeting_id, error=exc.code, detail=str(exc))
        return CommandResult(ok=True, meeting_id=a.meeting_id)

    async def meeting_cancel(self, a: CancelMeetingIn) -> CommandResult:
        try:
            self.mt.cancel_meeting(a.caller, a.meeting_id)
        except SchedulingError as exc:
            return CommandResult(ok=False, meeting_id=a.meeting_id, error=exc.code, detail=str(exc))
        return CommandResult(ok=True, meeting_id=a.meeting_id)

    # ---- queries ----
    async def meeting_get(self, meeting_id: int) -> Meeting:
        return self.mt.get_meeting(meeting_id)

    async def meetings_by_address(self, identity: str) -> List[Meeting]:
        return self.mt.get_meetings_by_address(identity)

    async def calendar_availability(self, a: AvailabilityIn) -> AvailabilityOut:
        available = self.mt.check_availability(a.identity, a.date, a.start_time, a.end_time)
        return AvailabilityOut(identity=a.identity, available=available)

    async def calendar_freebusy(self, a: FreeBusyIn) -> FreeBusyOut:
        busy = self.mt.freebusy(a.identities, a.date)
        shaped = {p: [BusyBlock(meeting_id=i, start_time=s, end_time=e) for (i, s, e) in blocks]
                  for p, blocks in busy.items()}
        return FreeBusyOut(busy=shaped)
