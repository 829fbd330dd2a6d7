"""Capture session negotiation with the desktop ScreenCast portal.

The handshake is strictly sequential:

- connect to the session bus
- CreateSession with a fresh random session token
- SelectSources with the requested source kinds
- Start, which lists the granted streams (only the first one is used)
- OpenPipeWireRemote, whose descriptor is duplicated into a handle owned by
  the resulting :class:`CaptureSession`

Any failure moves the negotiator to FAILED and disconnects from the bus;
no capture session exists afterwards.
"""

from __future__ import annotations

import os
import uuid
from enum import Enum
from typing import Callable, Optional

from screencast_uploader.core.logging_utils import LoggerLike, ensure_structured_logger
from screencast_uploader.recording.config import CaptureSettings
from screencast_uploader.recording.errors import (
    CaptureStartError,
    DescriptorDuplicationError,
    NegotiationError,
    NoStreamAvailableError,
    SessionCreateError,
    SourceSelectionError,
)

from .portal import ScreenCastPortal


class NegotiationState(Enum):
    IDLE = "idle"
    CONNECTED = "connected"
    SESSION_CREATED = "session_created"
    SOURCES_SELECTED = "sources_selected"
    STARTED = "started"
    DESCRIPTOR_ACQUIRED = "descriptor_acquired"
    FAILED = "failed"


class CaptureSession:
    """One negotiated capture: portal session handle plus an owned descriptor.

    The descriptor is closed exactly once, by :meth:`close` or on leaving an
    ``async with`` block. :meth:`aclose` additionally closes the portal
    session and its bus connection.
    """

    def __init__(
        self,
        session_handle: str,
        fd: int,
        node_id: int,
        *,
        portal: Optional[ScreenCastPortal] = None,
        close_fd: Callable[[int], None] = os.close,
        logger: LoggerLike = None,
    ) -> None:
        self.session_handle = session_handle
        self.node_id = node_id
        self._fd: Optional[int] = fd
        self._portal = portal
        self._close_fd = close_fd
        self._logger = ensure_structured_logger(logger, fallback_name=__name__)

    def __repr__(self) -> str:
        return (
            f"CaptureSession(handle={self.session_handle!r}, node_id={self.node_id}, "
            f"fd={self._fd})"
        )

    @property
    def closed(self) -> bool:
        return self._fd is None

    @property
    def fd(self) -> int:
        if self._fd is None:
            raise ValueError("capture session is closed")
        return self._fd

    def close(self) -> None:
        fd, self._fd = self._fd, None
        if fd is None:
            return
        try:
            self._close_fd(fd)
        except OSError as exc:
            self._logger.warning("Closing capture descriptor %d failed: %s", fd, exc)
        else:
            self._logger.debug("Closed capture descriptor %d", fd)

    async def aclose(self) -> None:
        self.close()
        portal, self._portal = self._portal, None
        if portal is None:
            return
        try:
            await portal.close_session(self.session_handle)
        except Exception as exc:
            self._logger.debug("Portal session close failed: %s", exc)
        finally:
            portal.disconnect()

    async def __aenter__(self) -> "CaptureSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


class CaptureNegotiator:
    """Single-use driver of the portal handshake."""

    def __init__(
        self,
        settings: CaptureSettings,
        *,
        portal: Optional[ScreenCastPortal] = None,
        dup: Callable[[int], int] = os.dup,
        close_fd: Callable[[int], None] = os.close,
        token_factory: Callable[[], str] = lambda: f"screencast_uploader_{uuid.uuid4().hex}",
        logger: LoggerLike = None,
    ) -> None:
        self._settings = settings
        self._logger = ensure_structured_logger(logger, fallback_name=__name__)
        self._portal = portal or ScreenCastPortal(
            response_timeout=settings.response_timeout_s or None,
            logger=self._logger,
        )
        self._dup = dup
        self._close_fd = close_fd
        self._token_factory = token_factory
        self._state = NegotiationState.IDLE

    @property
    def state(self) -> NegotiationState:
        return self._state

    def _transition(self, state: NegotiationState) -> None:
        self._logger.debug("Negotiation %s -> %s", self._state.value, state.value)
        self._state = state

    async def negotiate(self) -> CaptureSession:
        if self._state is not NegotiationState.IDLE:
            raise NegotiationError(f"negotiator already used (state {self._state.value})")
        try:
            return await self._negotiate()
        except NegotiationError as exc:
            self._transition(NegotiationState.FAILED)
            self._portal.disconnect()
            self._logger.error("Capture negotiation failed: %s", exc)
            raise

    async def _negotiate(self) -> CaptureSession:
        portal = self._portal

        try:
            await portal.connect()
        except Exception as exc:
            raise SessionCreateError(f"capture service unreachable: {exc}") from exc
        self._transition(NegotiationState.CONNECTED)

        token = self._token_factory()
        try:
            session_handle = await portal.create_session(token)
        except Exception as exc:
            raise SessionCreateError(f"CreateSession rejected: {exc}") from exc
        self._transition(NegotiationState.SESSION_CREATED)
        self._logger.info("Session created: %s", session_handle)

        try:
            await portal.select_sources(
                session_handle,
                types=self._settings.source_type_mask or None,
                multiple=False,
                cursor_mode=self._settings.cursor_mode_value,
            )
        except Exception as exc:
            raise SourceSelectionError(f"SelectSources rejected: {exc}") from exc
        self._transition(NegotiationState.SOURCES_SELECTED)
        self._logger.info(
            "Sources selected (%s)",
            ", ".join(self._settings.source_types) or "portal default",
        )

        try:
            streams = await portal.start(session_handle, self._settings.app_id)
        except Exception as exc:
            raise CaptureStartError(f"Start rejected: {exc}") from exc
        if not streams:
            raise NoStreamAvailableError("Start response contained no streams")
        self._transition(NegotiationState.STARTED)

        stream = streams[0]
        if len(streams) > 1:
            self._logger.info(
                "Portal granted %d streams; using node %d and ignoring the rest",
                len(streams),
                stream.node_id,
            )
        self._logger.info("Using stream node_id %d", stream.node_id)

        try:
            remote_fd = await portal.open_pipewire_remote(session_handle)
        except Exception as exc:
            raise CaptureStartError(f"OpenPipeWireRemote failed: {exc}") from exc

        try:
            owned_fd = self._dup(remote_fd)
        except OSError as exc:
            raise DescriptorDuplicationError(f"cannot duplicate descriptor {remote_fd}: {exc}") from exc
        finally:
            self._close_fd(remote_fd)
        self._transition(NegotiationState.DESCRIPTOR_ACQUIRED)
        self._logger.info("Duplicated capture descriptor %d -> %d", remote_fd, owned_fd)

        return CaptureSession(
            session_handle,
            owned_fd,
            stream.node_id,
            portal=portal,
            close_fd=self._close_fd,
            logger=self._logger,
        )


__all__ = ["CaptureNegotiator", "CaptureSession", "NegotiationState"]
