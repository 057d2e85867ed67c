"""Transports to the remote authority."""

from notesync.transport.http import HttpRemote, RemoteAuthority
from notesync.transport.push import PushChannel

__all__ = [
    "HttpRemote",
    "PushChannel",
    "RemoteAuthority",
]
