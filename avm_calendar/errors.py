# errors.py
# Every store failure is a caller-input or authorization violation; `code` is
# what intents and the HTTP surface report back.

from __future__ import annotations


class SchedulingError(Exception):
    code = "scheduling_error"
    default_message = "Scheduling operation rejected."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class InvalidParticipants(SchedulingError):
    code = "invalid_participants"
    default_message = "At least one participant is required."


class InvalidTimeRange(SchedulingError):
    code = "invalid_time_range"
    default_message = "Start time must be before end time."


class NotFound(SchedulingError):
    code = "not_found"
    default_message = "Meeting does not exist."


class NotOrganizer(SchedulingError):
    code = "not_organizer"
    default_message = "Not the meeting organizer."


class MeetingCancelled(SchedulingError):
    code = "meeting_cancelled"
    default_message = "Meeting is cancelled."


class AlreadyCancelled(SchedulingError):
    code = "already_cancelled"
    default_message = "Meeting is already cancelled."
