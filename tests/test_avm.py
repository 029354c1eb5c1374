"""Tests for the agent view model: projection fan-out from meeting
notifications and the CommandResult shape of every intent."""

from __future__ import annotations

import asyncio

import pytest

from avm_calendar.avm import AgentViewModel, ProjectionStore, identity_projection, meeting_projection
from avm_calendar.errors import InvalidTimeRange, NotFound
from avm_calendar.models import (
    AddParticipantsIn,
    AvailabilityIn,
    CancelMeetingIn,
    CreateMeetingIn,
    FreeBusyIn,
    MeetingNotification,
    RescheduleMeetingIn,
)
from avm_calendar.services import MeetingStore


# ── Fixtures ─────────────────────────────────────────────────────────────────


OWNER = "organizer@example.com"
ALICE = "alice@example.com"
BOB = "bob@example.com"
CAROL = "carol@example.com"
DATE = 1693440000


@pytest.fixture
def proj() -> ProjectionStore:
    return ProjectionStore(queue_size=8)


@pytest.fixture
def avm(proj) -> AgentViewModel:
    return AgentViewModel(MeetingStore(notify=proj.publish), proj)


def _make_create(**overrides) -> CreateMeetingIn:
    defaults = {
        "organizer": OWNER,
        "participants": [ALICE, BOB],
        "date": DATE,
        "start_time": 3600,
        "end_time": 7200,
        "agenda": "Design Sync",
        "meet_link": "https://example.com/meeting",
    }
    defaults.update(overrides)
    return CreateMeetingIn(**defaults)


def _drain(q: asyncio.Queue) -> list:
    out = []
    while not q.empty():
        out.append(q.get_nowait())
    return out


# ── ProjectionStore ──────────────────────────────────────────────────────────


def _created(meeting_id: int = 1) -> MeetingNotification:
    return MeetingNotification(kind="MeetingCreated", meeting_id=meeting_id, payload={
        "organizer": OWNER, "participants": [ALICE], "date": DATE, "start_time": 3600,
        "end_time": 7200, "agenda": "Design Sync", "meet_link": "https://example.com/meeting"})


def _cancelled(meeting_id: int = 1) -> MeetingNotification:
    return MeetingNotification(kind="MeetingCancelled", meeting_id=meeting_id)


class TestProjectionStore:
    @pytest.mark.asyncio
    async def test_subscribe_gets_current_snapshot_first(self, proj):
        proj.publish(_created())
        q = await proj.subscribe("meeting:1")
        ev = q.get_nowait()
        assert ev.version == 1
        assert ev.diff["status"] == "Scheduled"
        assert ev.diff["organizer"] == OWNER

    @pytest.mark.asyncio
    async def test_publish_bumps_version_and_fans_out(self, proj):
        q = await proj.subscribe("meeting:1")
        proj.publish(_created())
        proj.publish(_cancelled())
        events = _drain(q)
        assert [e.version for e in events] == [0, 1, 2]
        assert proj.get("meeting:1").snapshot["status"] == "Cancelled"

    @pytest.mark.asyncio
    async def test_full_subscriber_is_dropped_and_told_to_close(self):
        proj = ProjectionStore(queue_size=1)
        q = await proj.subscribe("meeting:1")
        assert q.get_nowait().version == 0

        proj.publish(_created())
        proj.publish(_cancelled())

        assert proj.get("meeting:1").subscribers == []
        assert await asyncio.wait_for(q.get(), 0.5) is None
        assert q.empty()

    @pytest.mark.asyncio
    async def test_zero_queue_size_means_unbounded(self):
        proj = ProjectionStore(queue_size=0)
        q = await proj.subscribe("meeting:1")
        for _ in range(5):
            proj.publish(_cancelled())
        assert q.maxsize == 0
        assert q.qsize() == 6
        assert len(proj.get("meeting:1").subscribers) == 1

    @pytest.mark.asyncio
    async def test_unsubscribe(self, proj):
        q = await proj.subscribe("meeting:1")
        proj.unsubscribe("meeting:1", q)
        proj.unsubscribe("meeting:1", q)
        assert proj.get("meeting:1").subscribers == []


# ── Notification fan-out ─────────────────────────────────────────────────────


class TestPublish:
    @pytest.mark.asyncio
    async def test_created_meeting_projection(self, avm, proj):
        result = await avm.meeting_create(_make_create())
        snap = proj.get(meeting_projection(result.meeting_id)).snapshot
        assert snap["status"] == "Scheduled"
        assert snap["organizer"] == OWNER
        assert snap["participants"] == [ALICE, BOB]
        assert snap["start_time"] == 3600
        for ident in (OWNER, ALICE, BOB):
            assert proj.get(identity_projection(ident)).snapshot == {
                "meeting_id": result.meeting_id,
                "event": "MeetingCreated",
            }

    @pytest.mark.asyncio
    async def test_lifecycle_streams_to_subscribers(self, avm, proj):
        result = await avm.meeting_create(_make_create())
        meeting_id = result.meeting_id
        meeting_q = await proj.subscribe(meeting_projection(meeting_id))
        carol_q = await proj.subscribe(identity_projection(CAROL))
        _drain(meeting_q)
        _drain(carol_q)

        await avm.meeting_reschedule(RescheduleMeetingIn(
            caller=OWNER, meeting_id=meeting_id, date=DATE, start_time=5400, end_time=9000))
        await avm.meeting_add_participants(AddParticipantsIn(
            caller=OWNER, meeting_id=meeting_id, participants=[ALICE, CAROL]))
        await avm.meeting_cancel(CancelMeetingIn(caller=OWNER, meeting_id=meeting_id))

        diffs = [e.diff for e in _drain(meeting_q)]
        assert diffs == [
            {"date": DATE, "start_time": 5400, "end_time": 9000},
            {"participants": [ALICE, BOB, CAROL]},
            {"status": "Cancelled"},
        ]
        carol_events = [e.diff["event"] for e in _drain(carol_q)]
        assert carol_events == ["ParticipantAdded", "MeetingCancelled"]

    @pytest.mark.asyncio
    async def test_rejected_intent_publishes_nothing(self, avm, proj):
        result = await avm.meeting_create(_make_create())
        q = await proj.subscribe(meeting_projection(result.meeting_id))
        _drain(q)
        await avm.meeting_cancel(CancelMeetingIn(caller=ALICE, meeting_id=result.meeting_id))
        assert _drain(q) == []


# ── Intents ──────────────────────────────────────────────────────────────────


class TestIntents:
    @pytest.mark.asyncio
    async def test_create_ok(self, avm):
        result = await avm.meeting_create(_make_create())
        assert result.ok is True
        assert result.meeting_id == 1
        assert result.error is None

    @pytest.mark.asyncio
    async def test_create_errors(self, avm):
        bad_range = await avm.meeting_create(_make_create(start_time=7200, end_time=3600))
        assert (bad_range.ok, bad_range.error) == (False, "invalid_time_range")
        assert bad_range.detail == "Start time must be before end time."

        no_people = await avm.meeting_create(_make_create(participants=[]))
        assert no_people.error == "invalid_participants"

    @pytest.mark.asyncio
    async def test_command_errors(self, avm):
        await avm.meeting_create(_make_create())

        not_organizer = await avm.meeting_reschedule(RescheduleMeetingIn(
            caller=ALICE, meeting_id=1, date=DATE, start_time=1, end_time=2))
        assert not_organizer.error == "not_organizer"

        missing = await avm.meeting_add_participants(AddParticipantsIn(
            caller=OWNER, meeting_id=99, participants=[CAROL]))
        assert missing.error == "not_found"
        assert missing.meeting_id == 99

        assert (await avm.meeting_cancel(CancelMeetingIn(caller=OWNER, meeting_id=1))).ok is True
        again = await avm.meeting_cancel(CancelMeetingIn(caller=OWNER, meeting_id=1))
        assert again.error == "already_cancelled"

        cancelled = await avm.meeting_add_participants(AddParticipantsIn(
            caller=OWNER, meeting_id=1, participants=[CAROL]))
        assert cancelled.error == "meeting_cancelled"

    @pytest.mark.asyncio
    async def test_queries(self, avm):
        await avm.meeting_create(_make_create())

        out = await avm.calendar_availability(AvailabilityIn(identity=ALICE, date=DATE, start_time=3500, end_time=3700))
        assert out.available is False

        fb = await avm.calendar_freebusy(FreeBusyIn(identities=[BOB, CAROL], date=DATE))
        assert [b.model_dump() for b in fb.busy[BOB]] == [{"meeting_id": 1, "start_time": 3600, "end_time": 7200}]
        assert fb.busy[CAROL] == []

        meetings = await avm.meetings_by_address(BOB)
        assert [m.id for m in meetings] == [1]
        assert (await avm.meeting_get(1)).agenda == "Design Sync"

    @pytest.mark.asyncio
    async def test_query_errors_propagate(self, avm):
        with pytest.raises(InvalidTimeRange):
            await avm.calendar_availability(AvailabilityIn(identity=ALICE, date=DATE, start_time=10, end_time=10))
        with pytest.raises(NotFound):
            await avm.meeting_get(5)
