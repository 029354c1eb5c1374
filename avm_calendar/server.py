# server.py
from typing import List

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from avm_calendar import config
from avm_calendar.avm import ProjectionStore, AgentViewModel
from avm_calendar.errors import NotFound, SchedulingError
from avm_calendar.logging_config import configure_structlog
from avm_calendar.models import (
    CommandResult, Meeting,
    CreateMeetingIn, RescheduleMeetingIn, AddParticipantsIn, CancelMeetingIn,
    AvailabilityIn, AvailabilityOut, FreeBusyIn, FreeBusyOut,
)
from avm_calendar.services import MeetingStore


def create_app(store: MeetingStore | None = None, proj: ProjectionStore | None = None) -> FastAPI:
    if proj is None:
        proj = ProjectionStore()
    mt = store if store is not None else MeetingStore(notify=proj.publish)
    avm = AgentViewModel(mt, proj)

    app = FastAPI(title="AVM – Meeting Calendar")
    app.state.store = mt
    app.state.proj = proj
    app.state.avm = avm

    @app.exception_handler(SchedulingError)
    async def scheduling_error(request: Request, exc: SchedulingError):
        status = 404 if isinstance(exc, NotFound) else 422
        return JSONResponse(status_code=status, content={"error": exc.code, "detail": str(exc)})

    @app.post("/intents/meeting.create", response_model=CommandResult)
    async def meeting_create(args: CreateMeetingIn):
        return await avm.meeting_create(args)

    @app.post("/intents/meeting.reschedule", response_model=CommandResult)
    async def meeting_reschedule(args: RescheduleMeetingIn):
        return await avm.meeting_reschedule(args)

    @app.post("/intents/meeting.add_participants", response_model=CommandResult)
    async def meeting_add_participants(args: AddParticipantsIn):
        return await avm.meeting_add_participants(args)

    @app.post("/intents/meeting.cancel", response_model=CommandResult)
    async def meeting_cancel(args: CancelMeetingIn):
        return await avm.meeting_cancel(args)

    @app.post("/intents/calendar.availability", response_model=AvailabilityOut)
    async def calendar_availability(args: AvailabilityIn):
        return await avm.calendar_availability(args)

    @app.post("/intents/calendar.freebusy", response_model=FreeBusyOut)
    async def calendar_freebusy(args: FreeBusyIn):
        return await avm.calendar_freebusy(args)

    @app.get("/meetings/{meeting_id}", response_model=Meeting)
    async def meeting_get(meeting_id: int):
        return await avm.meeting_get(meeting_id)

    @app.get("/identities/{identity}/meetings", response_model=List[Meeting])
    async def meetings_by_address(identity: str):
        return await avm.meetings_by_address(identity)

    @app.websocket("/subscriptions/{projection_id}")
    async def subscribe(ws: WebSocket, projection_id: str):
        await ws.accept()
        q = await proj.subscribe(projection_id)
        try:
            while True:
                ev = await q.get()
                if ev is None:
                    await ws.close(code=1013)
                    return
                await ws.send_json(ev.model_dump())
        except WebSocketDisconnect:
            return
        finally:
            proj.unsubscribe(projection_id, q)

    return app


def main() -> None:
    import uvicorn

    configure_structlog()
    uvicorn.run(create_app(), host=config.HOST, port=config.PORT)


if __name__ == "__main__":
    main()
