"""Legs: ``walk`` drives a Tuya robot vacuum through the Tuya cloud API."""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import json
import logging
import time
from collections.abc import Callable
from typing import Any, Protocol

import httpx

from familiar.errors import DeviceError
from familiar.tools.base import BaseTool
from familiar.types.config import MobilityConfig
from familiar.types.tools import ToolContext, ToolDef, ToolOutput, ToolParam

logger = logging.getLogger(__name__)

REGION_URLS = {
    "us": "https://openapi.tuyaus.com",
    "eu": "https://openapi.tuyaeu.com",
    "in": "https://openapi.tuyain.com",
    "cn": "https://openapi.tuyacn.com",
}

_COMMANDS = {
    "forward": "forward",
    "backward": "backward",
    "left": "turn_left",
    "right": "turn_right",
    "stop": "stop",
}

# Refresh the cached token this many seconds before Tuya says it expires.
_TOKEN_MARGIN = 60.0


class MobilityDriver(Protocol):
    """Something that can be told to move."""

    async def send(self, command: str) -> None:
        """Send a movement command (``forward``, ``turn_left``, ``stop``...)."""
        ...


def tuya_sign(
    secret: str, client_id: str, t: str, string_to_sign: str, access_token: str = "",
) -> str:
    """Tuya HMAC-SHA256 request signature (upper-case hex)."""
    message = f"{client_id}{access_token}{t}{string_to_sign}"
    return hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest().upper()


class TuyaVacuum:
    """Minimal Tuya OpenAPI client for a robot vacuum's ``control`` command."""

    def __init__(
        self,
        config: MobilityConfig,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config
        self._client = client
        self._clock = clock
        self._base_url = REGION_URLS.get(config.tuya_region.lower(), REGION_URLS["us"])
        self._token = ""
        self._token_expires = 0.0

    async def send(self, command: str) -> None:
        token = await self._access_token()
        path = f"/v1.0/devices/{self._config.tuya_device_id}/commands"
        await self._request(
            "POST", path, body={"commands": [{"code": "control", "value": command}]}, token=token,
        )
        logger.debug("Tuya command sent: %s", command)

    async def _access_token(self) -> str:
        if self._token and self._clock() < self._token_expires:
            return self._token
        result = await self._request("GET", "/v1.0/token?grant_type=1")
        self._token = str(result.get("access_token", ""))
        expire = float(result.get("expire_time", 0))
        self._token_expires = self._clock() + max(0.0, expire - _TOKEN_MARGIN)
        return self._token

    async def _request(
        self,
        method: str,
        path: str,
        *,
        body: dict[str, Any] | None = None,
        token: str = "",
    ) -> dict[str, Any]:
        content = json.dumps(body, separators=(",", ":")) if body is not None else ""
        t = str(int(self._clock() * 1000))
        string_to_sign = "\n".join(
            [method, hashlib.sha256(content.encode()).hexdigest(), "", path]
        )
        headers = {
            "client_id": self._config.tuya_api_key,
            "sign": tuya_sign(
                self._config.tuya_api_secret, self._config.tuya_api_key, t, string_to_sign, token,
            ),
            "t": t,
            "sign_method": "HMAC-SHA256",
        }
        if token:
            headers["access_token"] = token
        if content:
            headers["Content-Type"] = "application/json"

        client = self._client or httpx.AsyncClient(timeout=10.0)
        try:
            resp = await client.request(
                method, f"{self._base_url}{path}", content=content or None, headers=headers,
            )
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise DeviceError(f"Tuya request failed: {exc}") from exc
        finally:
            if self._client is None:
                await client.aclose()

        if not data.get("success"):
            raise DeviceError(f"Tuya error {data.get('code')}: {data.get('msg')}")
        result = data.get("result")
        return result if isinstance(result, dict) else {}


_WALK = ToolDef(
    name="walk",
    description=(
        "Move the robot body (vacuum cleaner). direction: forward|backward|left|right|stop. "
        "duration: seconds (optional). NOTE: walking does NOT change what the camera sees."
    ),
    parameters=(
        ToolParam(
            name="direction",
            type="string",
            description="Movement direction",
            enum=("forward", "backward", "left", "right", "stop"),
        ),
        ToolParam(
            name="duration",
            type="number",
            description="Duration in seconds (optional)",
            required=False,
        ),
    ),
)


class WalkTool(BaseTool):
    """Starts a movement, optionally stopping again after *duration* seconds."""

    def __init__(self, robot: MobilityDriver | None) -> None:
        self._robot = robot

    @property
    def definition(self) -> ToolDef:
        return _WALK

    async def execute(self, args: dict[str, Any], ctx: ToolContext) -> ToolOutput:
        direction = str(args.get("direction") or "stop")
        duration = args.get("duration")
        secs = float(duration) if isinstance(duration, (int, float)) else None

        if self._robot is None:
            return self._ok(f"(No robot configured, cannot walk {direction})")

        await self._robot.send(_COMMANDS.get(direction, "stop"))
        if secs is not None and direction != "stop":
            await asyncio.sleep(secs)
            await self._robot.send("stop")

        if secs is not None:
            return self._ok(f"Walked {direction} for {secs:g}s")
        return self._ok(f"Started moving {direction}")
