"""Eyes and neck: ``see`` takes a snapshot, ``look`` pans and tilts the camera."""

from __future__ import annotations

import asyncio
import base64
import hashlib
import logging
import os
import tempfile
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import quote

import httpx

from familiar.errors import DeviceError
from familiar.tools.base import BaseTool
from familiar.types.config import CameraConfig
from familiar.types.tools import ToolContext, ToolDef, ToolOutput, ToolParam

logger = logging.getLogger(__name__)

_CAPTURE_TIMEOUT = 20.0
_DEFAULT_DEGREES = 30

_SOAP_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<s:Envelope xmlns:s="http://www.w3.org/2003/05/soap-envelope"
            xmlns:ptz="http://www.onvif.org/ver20/ptz/wsdl"
            xmlns:tt="http://www.onvif.org/ver10/schema">
  <s:Header>{security}</s:Header>
  <s:Body>
    <ptz:RelativeMove>
      <ptz:ProfileToken>Profile_1</ptz:ProfileToken>
      <ptz:Translation>
        <tt:PanTilt x="{pan}" y="{tilt}"/>
      </ptz:Translation>
    </ptz:RelativeMove>
  </s:Body>
</s:Envelope>"""

_SECURITY_TEMPLATE = """<wsse:Security xmlns:wsse="http://docs.oasis-open.org/wss/2004/01/oasis-200401-wss-wssecurity-secext-1.0.xsd" xmlns:wsu="http://docs.oasis-open.org/wss/2004/01/oasis-200401-wss-wssecurity-utility-1.0.xsd">
  <wsse:UsernameToken>
    <wsse:Username>{username}</wsse:Username>
    <wsse:Password Type="http://docs.oasis-open.org/wss/2004/01/oasis-200401-wss-username-token-profile-1.0#PasswordDigest">{digest}</wsse:Password>
    <wsse:Nonce EncodingType="http://docs.oasis-open.org/wss/2004/01/oasis-200401-wss-soap-message-security-1.0#Base64Binary">{nonce}</wsse:Nonce>
    <wsu:Created>{created}</wsu:Created>
  </wsse:UsernameToken>
</wsse:Security>"""


class CameraDriver(Protocol):
    """Hardware access needed by the camera tools."""

    async def capture(self) -> bytes:
        """Return one JPEG frame. Raises DeviceError on failure."""
        ...

    async def move(self, pan_deg: float, tilt_deg: float) -> None:
        """Rotate relative to the current position."""
        ...


def direction_to_degrees(direction: str, degrees: int) -> tuple[float, float]:
    """Map a look direction to a (pan, tilt) delta in degrees.

    Positive pan turns the camera left and positive tilt points it down.
    """
    d = float(degrees)
    return {
        "left": (d, 0.0),
        "right": (-d, 0.0),
        "up": (0.0, -d),
        "down": (0.0, d),
    }.get(direction, (0.0, 0.0))


def ws_security_header(username: str, password: str, *, nonce: bytes | None = None,
                       created: str | None = None) -> str:
    """Build a WS-Security UsernameToken with a PasswordDigest.

    ``digest = base64(sha1(nonce + created + password))``
    """
    nonce = nonce if nonce is not None else os.urandom(16)
    created = created or datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
    digest = hashlib.sha1(nonce + created.encode() + password.encode()).digest()
    return _SECURITY_TEMPLATE.format(
        username=username,
        digest=base64.b64encode(digest).decode(),
        nonce=base64.b64encode(nonce).decode(),
        created=created,
    )


class OnvifCamera:
    """RTSP snapshots through ``ffmpeg`` plus ONVIF ``RelativeMove`` over HTTP."""

    def __init__(self, config: CameraConfig, client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        self._client = client

    @property
    def stream_url(self) -> str:
        c = self._config
        return f"rtsp://{quote(c.username, safe='')}:{quote(c.password, safe='')}@{c.host}:554/stream1"

    async def capture(self) -> bytes:
        with tempfile.TemporaryDirectory(prefix="familiar_cap_") as tmp:
            out = Path(tmp) / "snapshot.jpg"
            try:
                proc = await asyncio.create_subprocess_exec(
                    "ffmpeg", "-rtsp_transport", "tcp", "-i", self.stream_url,
                    "-vframes", "1", "-q:v", "3", "-y", str(out),
                    stdout=asyncio.subprocess.DEVNULL,
                    stderr=asyncio.subprocess.PIPE,
                )
            except OSError as exc:
                raise DeviceError(f"could not start ffmpeg: {exc}") from exc

            try:
                _, stderr = await asyncio.wait_for(proc.communicate(), timeout=_CAPTURE_TIMEOUT)
            except TimeoutError:
                proc.kill()
                await proc.wait()
                raise DeviceError(f"ffmpeg timed out after {_CAPTURE_TIMEOUT:.0f}s")

            if proc.returncode != 0:
                raise DeviceError(stderr.decode("utf-8", errors="replace").strip()[-500:])
            return out.read_bytes()

    async def move(self, pan_deg: float, tilt_deg: float) -> None:
        # ONVIF translation space is -1..1: pan spans 180 degrees, tilt 90.
        body = _SOAP_TEMPLATE.format(
            security=ws_security_header(self._config.username, self._config.password),
            pan=pan_deg / 180.0,
            tilt=tilt_deg / 90.0,
        )
        url = f"http://{self._config.host}:{self._config.onvif_port}/onvif/PTZ"
        headers = {"Content-Type": "application/soap+xml; charset=utf-8"}
        client = self._client or httpx.AsyncClient(timeout=10.0)
        try:
            resp = await client.post(url, content=body, headers=headers)
            if not resp.is_success:
                logger.warning("ONVIF RelativeMove returned HTTP %d", resp.status_code)
        except httpx.HTTPError as exc:
            logger.warning("ONVIF RelativeMove failed: %s", exc)
        finally:
            if self._client is None:
                await client.aclose()


_SEE = ToolDef(
    name="see",
    description=(
        "Take a photo with your camera (your eyes). "
        "Call this after looking around to actually see what is there."
    ),
)

_LOOK = ToolDef(
    name="look",
    description=(
        "Move your camera neck. direction: left|right|up|down|around. "
        "degrees: how far (default 30)."
    ),
    parameters=(
        ToolParam(
            name="direction",
            type="string",
            description="Direction to look",
            enum=("left", "right", "up", "down", "around"),
        ),
        ToolParam(
            name="degrees",
            type="integer",
            description="How far in degrees (1-90, default 30)",
            required=False,
            default=_DEFAULT_DEGREES,
        ),
    ),
)


class SeeTool(BaseTool):
    """Captures a frame and returns it as a base64 JPEG."""

    def __init__(self, camera: CameraDriver | None) -> None:
        self._camera = camera

    @property
    def definition(self) -> ToolDef:
        return _SEE

    async def execute(self, args: dict[str, Any], ctx: ToolContext) -> ToolOutput:
        if self._camera is None:
            return self._ok("(No camera configured)")
        try:
            jpeg = await self._camera.capture()
        except DeviceError as exc:
            return self._ok(f"Camera capture failed: {exc}")
        return self._ok("(Camera image captured)", base64.b64encode(jpeg).decode("ascii"))


class LookTool(BaseTool):
    """Pans or tilts the camera, or sweeps left-center-right for ``around``."""

    def __init__(self, camera: CameraDriver | None, settle_secs: float = 0.4) -> None:
        self._camera = camera
        self._settle = settle_secs

    @property
    def definition(self) -> ToolDef:
        return _LOOK

    async def execute(self, args: dict[str, Any], ctx: ToolContext) -> ToolOutput:
        direction = str(args.get("direction") or "around")
        try:
            degrees = int(args.get("degrees", _DEFAULT_DEGREES))
        except (TypeError, ValueError):
            degrees = _DEFAULT_DEGREES
        degrees = max(1, min(degrees, 90))

        if self._camera is None:
            return self._ok(f"(No camera, cannot look {direction})")

        if direction == "around":
            for pan in (-45.0, 90.0, -45.0):
                await self._camera.move(pan, 0.0)
                await asyncio.sleep(self._settle)
            return self._ok(
                "Swept left-center-right. Camera is now facing forward. Call see() to capture."
            )

        pan, tilt = direction_to_degrees(direction, degrees)
        await self._camera.move(pan, tilt)
        await asyncio.sleep(self._settle)

        desc = {
            "left": f"Turned left {degrees}°",
            "right": f"Turned right {degrees}°",
            "up": f"Tilted up {degrees}°",
            "down": f"Tilted down {degrees}°",
        }.get(direction, f"Moved {direction}")
        return self._ok(desc)
