"""
Launch Integrity Agent package initializer.

This package exposes ``LaunchCoordinator`` for external usage.  Other
internal modules (e.g. the autopsy / review services) should be imported
explicitly from their respective files.
"""

from .coordinator import LaunchCoordinator  # noqa: F401

__all__ = ["LaunchCoordinator"]
