"""Centralized path constants for the screencast uploader."""

from __future__ import annotations

import os
from pathlib import Path

_XDG_CONFIG_ENV = os.environ.get("XDG_CONFIG_HOME")
_XDG_STATE_ENV = os.environ.get("XDG_STATE_HOME")

USER_CONFIG_DIR = (
    Path(_XDG_CONFIG_ENV).expanduser() if _XDG_CONFIG_ENV else Path.home() / ".config"
) / "screencast_uploader"
USER_STATE_DIR = (
    Path(_XDG_STATE_ENV).expanduser() if _XDG_STATE_ENV else Path.home() / ".local" / "state"
) / "screencast_uploader"

# Configuration
CONFIG_PATH = USER_CONFIG_DIR / "config.txt"

# Logging
LOGS_DIR = USER_STATE_DIR / "logs"
DEFAULT_LOG_FILE = LOGS_DIR / "recorder.log"

# Object storage credentials (OCI SDK default location)
DEFAULT_OCI_CONFIG_FILE = Path("~/.oci/config")
