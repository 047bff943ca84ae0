"""Services package."""

from eventplanner.services.export import (
    ExportError,
    GoogleSheetsBudgetExporter,
    SheetData,
    build_budget_workbook,
)
from eventplanner.services.storage import (
    InMemoryStore,
    JsonFileStore,
    KeyValueStore,
    OrderedWriteQueue,
    StorageError,
    StorageKey,
    StorageReadError,
    StorageWriteError,
)
from eventplanner.services.sync import (
    DisabledSyncClient,
    RemoteCollection,
    RemoteSyncInterface,
    SupabaseSyncClient,
    create_sync_client,
)

__all__ = [
    # Export
    "ExportError",
    "GoogleSheetsBudgetExporter",
    "SheetData",
    "build_budget_workbook",
    # Local storage
    "InMemoryStore",
    "JsonFileStore",
    "KeyValueStore",
    "OrderedWriteQueue",
    "StorageError",
    "StorageKey",
    "StorageReadError",
    "StorageWriteError",
    # Remote sync
    "DisabledSyncClient",
    "RemoteCollection",
    "RemoteSyncInterface",
    "SupabaseSyncClient",
    "create_sync_client",
]
