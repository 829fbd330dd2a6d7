"""Record the desktop through the ScreenCast portal straight into object storage."""

__version__ = "0.1.0"
