# services.py
from __future__ import annotations
import threading
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import structlog

from avm_calendar.errors import (
    AlreadyCancelled, InvalidParticipants, InvalidTimeRange,
    MeetingCancelled, NotFound, NotOrganizer, SchedulingError,
)
from avm_calendar.models import Meeting, MeetingNotification

logger = structlog.get_logger(__name__)

NotificationSink = Callable[[MeetingNotification], None]


def _discard(notification: MeetingNotification) -> None:
    pass


class MeetingIdAllocator:
    """Hands out meeting ids 1, 2, 3, ... and never repeats one."""

    def __init__(self):
        self._counter = 0
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            self._counter += 1
            return self._counter


class SchedulingGuard:
    """Stateless precondition checks and the overlap scan.

    Intervals are half-open: ``[start, end)``. Two intervals that only touch
    at an endpoint do not overlap.
    """

    @staticmethod
    def validate_time_range(start: int, end: int) -> None:
        if not start < end:
            raise InvalidTimeRange()

    @staticmethod
    def validate_participants(participants: Sequence[str]) -> None:
        if not participants:
            raise InvalidParticipants()

    @staticmethod
    def validate_organizer(caller: str, meeting: Meeting) -> None:
        if caller != meeting.organizer:
            raise NotOrganizer()

    @staticmethod
    def validate_active(meeting: Meeting) -> None:
        if meeting.is_cancelled:
            raise MeetingCancelled()

    @staticmethod
    def overlaps(s1: int, e1: int, s2: int, e2: int) -> bool:
        return s1 < e2 and s2 < e1

    def check_availability(self, meetings: Iterable[Meeting], date: int, start: int, end: int) -> bool:
        self.validate_time_range(start, end)
        for m in meetings:
            if m.is_cancelled or m.date != date:
                continue
            if self.overlaps(start, end, m.start_time, m.end_time):
                return False
        return True


class MeetingStore:
    """Authoritative meeting records plus the identity -> meeting ids index.

    Every operation runs under one re-entrant lock, so callers never see a
    half-applied mutation. Notifications go to ``notify`` inside the lock,
    after the change is applied, in mutation order.
    """

    def __init__(self, notify: Optional[NotificationSink] = None,
                 allocator: Optional[MeetingIdAllocator] = None,
                 guard: Optional[SchedulingGuard] = None):
        self._meetings: Dict[int, Meeting] = {}
        self._index: Dict[str, List[int]] = {}
        self._notify = notify or _discard
        self._ids = allocator or MeetingIdAllocator()
        self._guard = guard or SchedulingGuard()
        self._lock = threading.RLock()

    # ---- internals ----
    def _get(self, meeting_id: int) -> Meeting:
        m = self._meetings.get(meeting_id)
        if m is None:
            raise NotFound(f"Meeting {meeting_id} does not exist.")
        return m

    def _index_append(self, identity: str, meeting_id: int) -> None:
        self._index.setdefault(identity, []).append(meeting_id)

    def _publish(self, kind: str, meeting_id: int, **payload) -> None:
        self._notify(MeetingNotification(kind=kind, meeting_id=meeting_id, payload=payload))

    def _authorized(self, caller: str, meeting_id: int) -> Meeting:
        m = self._get(meeting_id)
        self._guard.validate_organizer(caller, m)
        return m

    # ---- mutations ----
    def create_meeting(self, organizer: str, participants: Sequence[str], date: int,
                       start_time: int, end_time: int, agenda: str, meet_link: str) -> int:
        with self._lock:
            try:
                self._guard.validate_participants(participants)
                self._guard.validate_time_range(start_time, end_time)
            except SchedulingError as exc:
                logger.info("meeting_rejected", op="create", organizer=organizer, error=exc.code)
                raise
            meeting_id = self._ids.next()
            meeting = Meeting(
                id=meeting_id,
                organizer=organizer,
                participants=list(dict.fromkeys(participants)),
                date=date,
                start_time=start_time,
                end_time=end_time,
                agenda=agenda,
                meet_link=meet_link,
            )
            self._meetings[meeting_id] = meeting
            self._index_append(organizer, meeting_id)
            for p in meeting.participants:
                if p != organizer:
                    self._index_append(p, meeting_id)
            logger.info("meeting_created", meeting_id=meeting_id, organizer=organizer,
                        participants=len(meeting.participants))
            self._publish(
                "MeetingCreated", meeting_id,
                organizer=organizer,
                participants=list(meeting.participants),
                date=date,
                start_time=start_time,
                end_time=end_time,
                agenda=agenda,
                meet_link=meet_link,
            )
            return meeting_id

    def reschedule_meeting(self, caller: str, meeting_id: int, new_date: int,
                           new_start: int, new_end: int) -> None:
        with self._lock:
            try:
                m = self._authorized(caller, meeting_id)
                self._guard.validate_active(m)
                self._guard.validate_time_range(new_start, new_end)
            except SchedulingError as exc:
                logger.info("meeting_rejected", op="reschedule", meeting_id=meeting_id,
                            caller=caller, error=exc.code)
                raise
            m.date = new_date
            m.start_time = new_start
            m.end_time = new_end
            logger.info("meeting_rescheduled", meeting_id=meeting_id, date=new_date,
                        start_time=new_start, end_time=new_end)
            self._publish("MeetingRescheduled", meeting_id,
                          date=new_date, start_time=new_start, end_time=new_end)

    def add_participants(self, caller: str, meeting_id: int, new_participants: Sequence[str]) -> List[str]:
        """Add identities not yet on the meeting; returns the ones actually added."""
        with self._lock:
            try:
                m = self._authorized(caller, meeting_id)
                self._guard.validate_active(m)
                self._guard.validate_participants(new_participants)
            except SchedulingError as exc:
                logger.info("meeting_rejected", op="add_participants", meeting_id=meeting_id,
                            caller=caller, error=exc.code)
                raise
            present = set(m.participants)
            added: List[str] = []
            for p in new_participants:
                if p in present:
                    continue
                present.add(p)
                m.participants.append(p)
                # organizer was indexed at creation
                if p != m.organizer:
                    self._index_append(p, meeting_id)
                added.append(p)
            if added:
                logger.info("participants_added", meeting_id=meeting_id, added=added)
            failures = []
            for p in added:
                try:
                    self._publish("ParticipantAdded", meeting_id, participant=p)
                except Exception as exc:
                    failures.append(exc)
            if failures:
                # every addition was applied; report the first sink failure
                raise failures[0]
            return added

    def cancel_meeting(self, caller: str, meeting_id: int) -> None:
        with self._lock:
            try:
                m = self._authorized(caller, meeting_id)
                if m.is_cancelled:
                    raise AlreadyCancelled()
            except SchedulingError as exc:
                logger.info("meeting_rejected", op="cancel", meeting_id=meeting_id,
                            caller=caller, error=exc.code)
                raise
            m.is_cancelled = True
            logger.info("meeting_cancelled", meeting_id=meeting_id)
            self._publish("MeetingCancelled", meeting_id)

    # ---- queries ----
    def get_meeting(self, meeting_id: int) -> Meeting:
        with self._lock:
            return self._get(meeting_id).model_copy(deep=True)

    def get_meetings_by_address(self, identity: str) -> List[Meeting]:
        with self._lock:
            return [self._meetings[i].model_copy(deep=True) for i in self._index.get(identity, [])]

    def check_availability(self, identity: str, date: int, start: int, end: int) -> bool:
        with self._lock:
            meetings = (self._meetings[i] for i in self._index.get(identity, []))
            return self._guard.check_availability(meetings, date, start, end)

    def freebusy(self, identities: Sequence[str], date: int) -> Dict[str, List[Tuple[int, int, int]]]:
        """Busy ``(meeting_id, start, end)`` blocks per identity on ``date``."""
        with self._lock:
            out: Dict[str, List[Tuple[int, int, int]]] = {}
            for ident in identities:
                blocks = []
                for i in self._index.get(ident, []):
                    m = self._meetings[i]
                    if not m.is_cancelled and m.date == date:
                        blocks.append((m.id, m.start_time, m.end_time))
                out[ident] = blocks
            return out

    def __len__(self) -> int:
        with self._lock:
            return len(self._meetings)
