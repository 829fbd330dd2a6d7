"""Command-line bootstrap for the screencast uploader."""

from .main import build_parser, main

__all__ = ["build_parser", "main"]
