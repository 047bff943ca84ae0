"""Pick the sync implementation from configuration."""

from typing import Optional

import structlog

from eventplanner.audit import AuditLogger
from eventplanner.config import SupabaseSettings, get_settings
from eventplanner.services.sync.disabled import DisabledSyncClient
from eventplanner.services.sync.interface import RemoteSyncInterface
from eventplanner.services.sync.supabase_client import SupabaseSyncClient


logger = structlog.get_logger(__name__)


async def create_sync_client(
    settings: Optional[SupabaseSettings] = None,
    audit: Optional[AuditLogger] = None,
) -> RemoteSyncInterface:
    """
    Sync client for the current configuration.

    Unconfigured (or placeholder) credentials, or a backend that cannot
    be reached at startup, give the disabled client. Configured account
    credentials are used to sign in straight away.
    """
    settings = settings or get_settings().supabase
    if not settings.is_configured:
        logger.info("remote_sync_disabled", reason="not_configured")
        return DisabledSyncClient()

    try:
        client = await SupabaseSyncClient.connect(settings, audit=audit)
    except Exception as e:
        logger.error("remote_sync_disabled", reason="connect_failed", error=str(e))
        return DisabledSyncClient()

    if settings.has_credentials:
        await client.sign_in(settings.email, settings.password)
    return client
