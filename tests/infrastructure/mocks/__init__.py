"""Scripted doubles for the media library, the portal and object storage."""
