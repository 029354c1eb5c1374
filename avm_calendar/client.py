# client.py
import asyncio, json
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx, websockets
import structlog

from avm_calendar import config
from avm_calendar.logging_config import configure_structlog

logger = structlog.get_logger(__name__)


class CalendarClient:
    """Thin async wrapper over the calendar intents.

    Pass ``http`` to reuse a client (tests hand in one bound to the ASGI app).
    """

    def __init__(self, base_url: str = config.CALENDAR_HTTP, ws_url: str = config.CALENDAR_WS,
                 http: Optional[httpx.AsyncClient] = None, timeout: float = 15):
        self.base_url = base_url.rstrip("/")
        self.ws_url = ws_url.rstrip("/")
        self._http = http
        self._timeout = timeout

    async def _post(self, intent: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        if self._http is not None:
            r = await self._http.post(f"{self.base_url}/intents/{intent}", json=payload, timeout=self._timeout)
        else:
            async with httpx.AsyncClient() as http:
                r = await http.post(f"{self.base_url}/intents/{intent}", json=payload, timeout=self._timeout)
        r.raise_for_status()
        return r.json()

    async def _get(self, path: str) -> Any:
        if self._http is not None:
            r = await self._http.get(f"{self.base_url}{path}", timeout=self._timeout)
        else:
            async with httpx.AsyncClient() as http:
                r = await http.get(f"{self.base_url}{path}", timeout=self._timeout)
        r.raise_for_status()
        return r.json()

    # ---- commands ----
    async def create_meeting(self, organizer: str, participants: List[str], date: int, start_time: int,
                             end_time: int, agenda: str, meet_link: str) -> dict:
        payload = {"organizer": organizer, "participants": participants, "date": date,
                   "start_time": start_time, "end_time": end_time, "agenda": agenda, "meet_link": meet_link}
        return await self._post("meeting.create", payload)

    async def reschedule_meeting(self, caller: str, meeting_id: int, date: int, start_time: int, end_time: int) -> dict:
        payload = {"caller": caller, "meeting_id": meeting_id, "date": date,
                   "start_time": start_time, "end_time": end_time}
        return await self._post("meeting.reschedule", payload)

    async def add_participants(self, caller: str, meeting_id: int, participants: List[str]) -> dict:
        payload = {"caller": caller, "meeting_id": meeting_id, "participants": participants}
        return await self._post("meeting.add_participants", payload)

    async def cancel_meeting(self, caller: str, meeting_id: int) -> dict:
        return await self._post("meeting.cancel", {"caller": caller, "meeting_id": meeting_id})

    # ---- queries ----
    async def check_availability(self, identity: str, date: int, start_time: int, end_time: int) -> bool:
        payload = {"identity": identity, "date": date, "start_time": start_time, "end_time": end_time}
        return (await self._post("calendar.availability", payload))["available"]

    async def freebusy(self, identities: List[str], date: int) -> dict:
        return await self._post("calendar.freebusy", {"identities": identities, "date": date})

    async def get_meeting(self, meeting_id: int) -> dict:
        return await self._get(f"/meetings/{meeting_id}")

    async def meetings_by_address(self, identity: str) -> List[dict]:
        return await self._get(f"/identities/{identity}/meetings")

    async def subscribe(self, projection_id: str) -> AsyncIterator[dict]:
        uri = f"{self.ws_url}/subscriptions/{projection_id}"
        async with websockets.connect(uri) as ws:
            async for msg in ws:
                yield json.loads(msg)


async def watch(client: CalendarClient, projection_id: str, limit: int):
    seen = 0
    async for ev in client.subscribe(projection_id):
        print("[projection]", ev)
        seen += 1
        if seen >= limit:
            return


async def main():
    configure_structlog()
    client = CalendarClient()
    created = await client.create_meeting(
        config.ORGANIZER, config.PARTICIPANTS, config.MEETING_DATE, 3600, 7200, config.AGENDA, config.MEET_LINK)
    if not created["ok"]:
        logger.error("demo_create_failed", error=created["error"], detail=created.get("detail"))
        return
    meeting_id = created["meeting_id"]
    logger.info("demo_meeting_created", meeting_id=meeting_id)

    # snapshot, reschedule, cancel
    watcher = asyncio.create_task(watch(client, f"meeting:{meeting_id}", limit=3))
    await asyncio.sleep(0.2)
    await client.reschedule_meeting(config.ORGANIZER, meeting_id, config.MEETING_DATE, 5400, 9000)
    for p in config.PARTICIPANTS:
        free = await client.check_availability(p, config.MEETING_DATE, 3600, 5400)
        print(f"{p} free 3600-5400: {free}")
    await client.cancel_meeting(config.ORGANIZER, meeting_id)
    await watcher

if __name__ == "__main__":
    asyncio.run(main())
