"""Client for the XDG desktop ScreenCast portal on the session bus.

CreateSession, SelectSources and Start return a request object path right
away; the actual result arrives later as an
``org.freedesktop.portal.Request.Response`` signal on that path. The handler
for the predicted request path is registered before the method call goes
out so a fast reply cannot be missed.
"""

from __future__ import annotations

import asyncio
import os
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from dbus_fast import BusType, Message, MessageType, Variant
from dbus_fast.aio import MessageBus

from screencast_uploader.core.logging_utils import LoggerLike, ensure_structured_logger
from screencast_uploader.recording.errors import PortalError

PORTAL_BUS_NAME = "org.freedesktop.portal.Desktop"
PORTAL_OBJECT_PATH = "/org/freedesktop/portal/desktop"
SCREENCAST_INTERFACE = "org.freedesktop.portal.ScreenCast"
REQUEST_INTERFACE = "org.freedesktop.portal.Request"
SESSION_INTERFACE = "org.freedesktop.portal.Session"
DBUS_BUS_NAME = "org.freedesktop.DBus"
DBUS_OBJECT_PATH = "/org/freedesktop/DBus"
DBUS_INTERFACE = "org.freedesktop.DBus"

RESPONSE_SUCCESS = 0
RESPONSE_CANCELLED = 1
RESPONSE_OTHER = 2

_RESPONSE_NAMES = {
    RESPONSE_SUCCESS: "success",
    RESPONSE_CANCELLED: "cancelled by user",
    RESPONSE_OTHER: "ended",
}


@dataclass(frozen=True, slots=True)
class PortalStream:
    """One entry of the Start response ``streams`` list."""

    node_id: int
    properties: Dict[str, Any] = field(default_factory=dict)


def _unwrap(value: Any) -> Any:
    return value.value if isinstance(value, Variant) else value


def _unwrap_dict(values: Dict[str, Any]) -> Dict[str, Any]:
    return {key: _unwrap(value) for key, value in (values or {}).items()}


def _sender_path_component(unique_name: str) -> str:
    return unique_name.lstrip(":").replace(".", "_")


def _new_token(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


class ScreenCastPortal:
    """Sequential, one-request-at-a-time access to the ScreenCast portal."""

    def __init__(
        self,
        *,
        bus_factory: Optional[Callable[[], MessageBus]] = None,
        response_timeout: Optional[float] = None,
        logger: LoggerLike = None,
    ) -> None:
        self._bus_factory = bus_factory or (
            lambda: MessageBus(bus_type=BusType.SESSION, negotiate_unix_fd=True)
        )
        self._response_timeout = response_timeout
        self._logger = ensure_structured_logger(logger, fallback_name=__name__)
        self._bus: Optional[MessageBus] = None

    @property
    def connected(self) -> bool:
        return self._bus is not None

    # ------------------------------------------------------------------ connection

    async def connect(self) -> None:
        if self._bus is not None:
            return
        bus = self._bus_factory()
        try:
            self._bus = await bus.connect()
        except Exception as exc:
            raise PortalError(f"cannot connect to session bus: {exc}") from exc
        self._logger.debug("Connected to session bus as %s", self._bus.unique_name)

    def disconnect(self) -> None:
        bus, self._bus = self._bus, None
        if bus is None:
            return
        bus.disconnect()
        self._logger.debug("Disconnected from session bus")

    def _require_bus(self) -> MessageBus:
        if self._bus is None:
            raise PortalError("portal is not connected")
        return self._bus

    # ------------------------------------------------------------------ low level

    async def _call(self, message: Message) -> Message:
        reply = await self._require_bus().call(message)
        if reply.message_type == MessageType.ERROR:
            detail = reply.body[0] if reply.body else ""
            raise PortalError(f"{message.member} failed: {reply.error_name}: {detail}")
        return reply

    async def _add_match(self, rule: str) -> None:
        await self._call(
            Message(
                destination=DBUS_BUS_NAME,
                path=DBUS_OBJECT_PATH,
                interface=DBUS_INTERFACE,
                member="AddMatch",
                signature="s",
                body=[rule],
            )
        )

    async def _remove_match(self, rule: str) -> None:
        if self._bus is None:
            return
        try:
            await self._call(
                Message(
                    destination=DBUS_BUS_NAME,
                    path=DBUS_OBJECT_PATH,
                    interface=DBUS_INTERFACE,
                    member="RemoveMatch",
                    signature="s",
                    body=[rule],
                )
            )
        except PortalError as exc:
            self._logger.debug("RemoveMatch failed: %s", exc)

    async def _request(
        self,
        member: str,
        signature: str,
        args: List[Any],
        options: Dict[str, Variant],
    ) -> Dict[str, Any]:
        """Issue a portal request and wait for its Response signal."""
        bus = self._require_bus()
        token = _new_token("screencast_uploader")
        request_path = (
            f"{PORTAL_OBJECT_PATH}/request/{_sender_path_component(bus.unique_name)}/{token}"
        )
        options = dict(options)
        options["handle_token"] = Variant("s", token)

        loop = asyncio.get_running_loop()
        response: asyncio.Future = loop.create_future()

        def _on_message(message: Message) -> None:
            if (
                message.message_type == MessageType.SIGNAL
                and message.interface == REQUEST_INTERFACE
                and message.member == "Response"
                and message.path == request_path
                and not response.done()
            ):
                response.set_result(message.body)

        rule = (
            f"type='signal',interface='{REQUEST_INTERFACE}',member='Response',"
            f"path='{request_path}'"
        )
        bus.add_message_handler(_on_message)
        try:
            await self._add_match(rule)
            reply = await self._call(
                Message(
                    destination=PORTAL_BUS_NAME,
                    path=PORTAL_OBJECT_PATH,
                    interface=SCREENCAST_INTERFACE,
                    member=member,
                    signature=signature,
                    body=[*args, options],
                )
            )
            if reply.body and reply.body[0] != request_path:
                self._logger.warning(
                    "%s returned unexpected request path %s (expected %s)",
                    member,
                    reply.body[0],
                    request_path,
                )
            try:
                code, results = await asyncio.wait_for(response, self._response_timeout)
            except asyncio.TimeoutError as exc:
                raise PortalError(f"{member} timed out waiting for the portal response") from exc
        finally:
            bus.remove_message_handler(_on_message)
            await self._remove_match(rule)

        if code != RESPONSE_SUCCESS:
            reason = _RESPONSE_NAMES.get(code, f"code {code}")
            raise PortalError(f"{member} was rejected ({reason})", response_code=code)
        return _unwrap_dict(results)

    # ------------------------------------------------------------------ ScreenCast API

    async def create_session(self, session_token: str) -> str:
        results = await self._request(
            "CreateSession",
            "a{sv}",
            [],
            {"session_handle_token": Variant("s", session_token)},
        )
        handle = results.get("session_handle")
        if not handle:
            raise PortalError("CreateSession response carried no session_handle")
        return str(handle)

    async def select_sources(
        self,
        session_handle: str,
        *,
        types: Optional[int] = None,
        multiple: bool = False,
        cursor_mode: Optional[int] = None,
    ) -> None:
        options: Dict[str, Variant] = {"multiple": Variant("b", multiple)}
        if types:
            options["types"] = Variant("u", types)
        if cursor_mode is not None:
            options["cursor_mode"] = Variant("u", cursor_mode)
        await self._request("SelectSources", "oa{sv}", [session_handle], options)

    async def start(self, session_handle: str, parent_window: str) -> List[PortalStream]:
        results = await self._request("Start", "osa{sv}", [session_handle, parent_window], {})
        streams = []
        for entry in results.get("streams") or []:
            node_id, properties = entry
            streams.append(PortalStream(node_id=int(node_id), properties=_unwrap_dict(properties)))
        return streams

    async def open_pipewire_remote(self, session_handle: str) -> int:
        """Return the PipeWire remote descriptor; the caller owns and must close it."""
        reply = await self._call(
            Message(
                destination=PORTAL_BUS_NAME,
                path=PORTAL_OBJECT_PATH,
                interface=SCREENCAST_INTERFACE,
                member="OpenPipeWireRemote",
                signature="oa{sv}",
                body=[session_handle, {}],
            )
        )
        fds = list(reply.unix_fds or [])
        if not reply.body or not fds:
            for fd in fds:
                os.close(fd)
            raise PortalError("OpenPipeWireRemote returned no file descriptor")
        index = int(reply.body[0])
        if not 0 <= index < len(fds):
            for fd in fds:
                os.close(fd)
            raise PortalError(f"OpenPipeWireRemote returned bad descriptor index {index}")
        for position, fd in enumerate(fds):
            if position != index:
                os.close(fd)
        return fds[index]

    async def close_session(self, session_handle: str) -> None:
        await self._call(
            Message(
                destination=PORTAL_BUS_NAME,
                path=session_handle,
                interface=SESSION_INTERFACE,
                member="Close",
            )
        )


__all__ = [
    "PORTAL_BUS_NAME",
    "PORTAL_OBJECT_PATH",
    "PortalStream",
    "REQUEST_INTERFACE",
    "SCREENCAST_INTERFACE",
    "ScreenCastPortal",
]
