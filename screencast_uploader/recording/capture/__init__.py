"""Screen-capture session negotiation."""

from .negotiator import CaptureNegotiator, CaptureSession, NegotiationState
from .portal import PortalStream, ScreenCastPortal

__all__ = [
    "CaptureNegotiator",
    "CaptureSession",
    "NegotiationState",
    "PortalStream",
    "ScreenCastPortal",
]
