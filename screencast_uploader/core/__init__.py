"""Shared plumbing: logging, paths and config file access."""
