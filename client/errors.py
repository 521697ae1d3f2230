"""RoomSync client error types.

None of these reach the host: each is caught where the engine meets its
collaborator, logged, and left for the next heartbeat or user action to
reconcile.
"""
from __future__ import annotations


class SyncError(Exception):
    """Base class for synchronization failures."""


class PlayerUnavailable(SyncError):
    """The playback facade is not attached or not ready yet."""


class PlayOperationRejected(SyncError):
    """The player refused or failed an asynchronous play request."""


class ChannelUnavailable(SyncError):
    """No active connection to the room relay."""
