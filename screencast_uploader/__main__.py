"""Allow ``python -m screencast_uploader`` to record one screencast."""

from __future__ import annotations

import sys

from screencast_uploader.cli.main import main

if __name__ == "__main__":
    sys.exit(main())
