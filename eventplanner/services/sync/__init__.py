"""
Remote Sync Package

The sync capability interface, its disabled and Supabase
implementations, and the factory that picks one from configuration.
"""

from eventplanner.services.sync.interface import (
    RemoteCollection,
    RemoteSyncInterface,
)
from eventplanner.services.sync.disabled import DisabledSyncClient
from eventplanner.services.sync.supabase_client import (
    SupabaseSyncClient,
    parse_realtime_payload,
)
from eventplanner.services.sync.factory import create_sync_client

__all__ = [
    # Interface
    "RemoteCollection",
    "RemoteSyncInterface",
    # Implementations
    "DisabledSyncClient",
    "SupabaseSyncClient",
    "create_sync_client",
    "parse_realtime_payload",
]
