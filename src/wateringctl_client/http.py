"""REST access to the device.

Reads used to (re)fill the entity mirrors:

GET /valves                      -> {"items": [Valve, ...]}
GET /scheduler/{day}             -> ScheduledDay

Mutations. The device answers with the changed entity (or 204) and
broadcasts the change as push events, which is how the mirrors learn
about it:

PUT    /valves/{id}              {alias, disabled} -> Valve
POST   /valves/{id}              switch on
DELETE /valves/{id}              switch off
POST   /valves/{id}/timer        {duration}
DELETE /valves/{id}/timer
PUT    /scheduler/{day}          {disabled} -> ScheduledDay
PUT    /scheduler/{day}/{index}  {start, end, identifier, disabled} -> Interval
DELETE /scheduler/{day}/{index}

Error responses carry ``{"code": ...}``; the code is reported through
the error interceptor before the HTTP error propagates.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .notifications import ErrorInterceptor
from .types import Interval, ScheduledDay, Valve

logger = logging.getLogger(__name__)


def _error_code(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        code = body.get("code")
        return str(code) if code is not None else None
    return None


class DeviceHttpApi:
    """Async HTTP client for the device's REST routes."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        interceptor: ErrorInterceptor | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.interceptor = interceptor
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    # Valves

    async def get_valves(self) -> list[Valve]:
        """Fetch all valves."""
        data = await self._request("GET", "/valves")
        return [Valve.model_validate(item) for item in data.get("items", [])]

    async def update_valve(self, identifier: int, alias: str, disabled: bool = False) -> Valve:
        """Rename a valve and set its disabled flag."""
        data = await self._request(
            "PUT", f"/valves/{identifier}", json={"alias": alias, "disabled": disabled}
        )
        return Valve.model_validate(data)

    async def activate_valve(self, identifier: int) -> None:
        await self._request("POST", f"/valves/{identifier}")

    async def deactivate_valve(self, identifier: int) -> None:
        await self._request("DELETE", f"/valves/{identifier}")

    async def set_valve_timer(self, identifier: int, duration: str) -> None:
        """Switch a valve on for ``duration`` (``HH:MM:SS``).

        The device refuses a zero duration and a valve that already runs
        on a timer.
        """
        await self._request("POST", f"/valves/{identifier}/timer", json={"duration": duration})

    async def clear_valve_timer(self, identifier: int) -> None:
        await self._request("DELETE", f"/valves/{identifier}/timer")

    # Scheduler

    async def get_day(self, day: str) -> ScheduledDay:
        """Fetch one weekday's schedule."""
        data = await self._request("GET", f"/scheduler/{day}")
        return ScheduledDay.model_validate(data)

    async def update_day(self, day: str, disabled: bool) -> ScheduledDay:
        data = await self._request("PUT", f"/scheduler/{day}", json={"disabled": disabled})
        return ScheduledDay.model_validate(data)

    async def update_interval(
        self,
        day: str,
        index: int,
        start: str,
        end: str,
        identifier: int,
        disabled: bool = False,
    ) -> Interval:
        """Write the interval slot ``index`` of a day."""
        body = {"start": start, "end": end, "identifier": identifier, "disabled": disabled}
        data = await self._request("PUT", f"/scheduler/{day}/{index}", json=body)
        return Interval.model_validate(data)

    async def delete_interval(self, day: str, index: int) -> None:
        """Reset an interval slot to empty."""
        await self._request("DELETE", f"/scheduler/{day}/{index}")

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, json: dict[str, Any] | None = None) -> Any:
        response = await self._client.request(method, path, json=json)
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError:
            code = _error_code(response)
            logger.warning(f"{method} {path} failed: {response.status_code} {code or ''}")
            # Without a code there is nothing meaningful to show
            if code and self.interceptor is not None:
                self.interceptor.report(code)
            raise
        if not response.content:
            return None
        return response.json()

    async def __aenter__(self) -> DeviceHttpApi:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()
