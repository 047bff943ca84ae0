"""
Supabase Sync Client

Networked implementation of the remote sync capability on top of the
async Supabase client (PostgREST for tables, Realtime for push).

ACCESS RULES (mirrored in the queries, enforced server-side by RLS):
- events, budget_categories, budget_expenses: rows owned by the user
- projects: owned by the user, or shared with them (shared_with contains
  the user id)
- tasks: no owner column; visible through a visible project

Local ids are sent on insert so both sides agree on identity without a
round trip. Categories are upserted because the eight defaults exist on
every device under the same ids.

Every call is retried with exponential backoff (tenacity). Whatever
still fails is logged, audited and converted to a failure value.
"""

from typing import Any, Callable, Optional

import structlog
from pydantic import ValidationError
from supabase import AsyncClient, acreate_client
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential

from eventplanner.audit import AuditLogger
from eventplanner.config import SupabaseSettings
from eventplanner.models.audit import AuditEventBuilder
from eventplanner.models.planner import (
    BudgetCategory,
    BudgetExpense,
    Event,
    Project,
    Task,
)
from eventplanner.services.sync.interface import (
    EntityT,
    EventCallback,
    RemoteCollection,
    RemoteSyncInterface,
)
from eventplanner.services.sync.rows import (
    BUDGET_CATEGORIES_TABLE,
    BUDGET_EXPENSES_TABLE,
    EVENTS_TABLE,
    PROJECTS_TABLE,
    TASKS_TABLE,
    TableSpec,
    changes_to_row,
    entity_to_row,
    row_to_entity,
)


logger = structlog.get_logger(__name__)

EVENTS_CHANNEL = "events"


def visible_projects_filter(user_id: str) -> str:
    """PostgREST `or` filter: owned by, or shared with, the user."""
    return f"user_id.eq.{user_id},shared_with.cs.{{{user_id}}}"


def parse_realtime_payload(payload: dict[str, Any]) -> tuple[Optional[str], Optional[dict]]:
    """
    Change type and new record of a postgres_changes payload.

    Accepts both the nested shape ({"data": {"type", "record"}}) and the
    flat one ({"eventType", "new"}).
    """
    data = payload.get("data") if isinstance(payload.get("data"), dict) else payload
    change_type = data.get("type") or data.get("eventType") or payload.get("eventType")
    record = data.get("record") or data.get("new") or payload.get("new")
    if change_type is not None:
        change_type = str(change_type).upper()
    return change_type, record if isinstance(record, dict) else None


class SupabaseCollection(RemoteCollection[EntityT]):
    """One remote table, scoped to the owning user."""

    def __init__(self, owner: "SupabaseSyncClient", spec: TableSpec):
        self._owner = owner
        self._spec = spec
        self.entity_type = spec.entity_type

    def _table(self):
        return self._owner.client.table(self._spec.table)

    def _scope(self, query, user_id: str):
        return query.eq("user_id", user_id)

    def _parse_rows(self, rows: list[dict]) -> list[EntityT]:
        entities = []
        for row in rows or []:
            try:
                entities.append(row_to_entity(self._spec, row))
            except ValidationError as e:
                logger.warning(
                    "remote_row_skipped",
                    table=self._spec.table,
                    id=row.get("id"),
                    errors=e.error_count(),
                )
        return entities

    async def list(self) -> list[EntityT]:
        user_id = self._owner.user_id
        if not user_id:
            return []
        response = await self._owner.execute(
            self._spec, "list", None,
            lambda: self._scope(self._table().select("*"), user_id)
            .order("created_at", desc=True),
        )
        return [] if response is None else self._parse_rows(response.data)

    async def create(self, entity: EntityT) -> Optional[EntityT]:
        user_id = self._owner.user_id
        if not user_id:
            return None
        row = entity_to_row(self._spec, entity, user_id)
        response = await self._owner.execute(
            self._spec, "create", entity.id, lambda: self._table().insert(row)
        )
        if response is None:
            return None
        created = self._parse_rows(response.data)
        return created[0] if created else entity

    async def update(self, entity_id: str, changes: dict[str, Any]) -> bool:
        user_id = self._owner.user_id
        if not user_id:
            return False
        row = changes_to_row(self._spec, changes)
        if not row:
            return True
        response = await self._owner.execute(
            self._spec, "update", entity_id,
            lambda: self._scope(self._table().update(row).eq("id", entity_id), user_id),
        )
        return response is not None

    async def delete(self, entity_id: str) -> bool:
        user_id = self._owner.user_id
        if not user_id:
            return False
        response = await self._owner.execute(
            self._spec, "delete", entity_id,
            lambda: self._scope(self._table().delete().eq("id", entity_id), user_id),
        )
        return response is not None


class SupabaseProjectCollection(SupabaseCollection[Project]):
    """Projects are visible to their owner and to the users they are shared with."""

    def _scope(self, query, user_id: str):
        return query.or_(visible_projects_filter(user_id))


class SupabaseTaskCollection(SupabaseCollection[Task]):
    """Tasks inherit visibility from their project."""

    def _scope(self, query, user_id: str):
        return query

    async def list(self) -> list[Task]:
        user_id = self._owner.user_id
        if not user_id:
            return []
        projects = await self._owner.execute(
            PROJECTS_TABLE, "list", None,
            lambda: self._owner.client.table(PROJECTS_TABLE.table)
            .select("id")
            .or_(visible_projects_filter(user_id)),
        )
        if projects is None or not projects.data:
            return []
        project_ids = [row["id"] for row in projects.data]
        response = await self._owner.execute(
            self._spec, "list", None,
            lambda: self._table()
            .select("*")
            .in_("project_id", project_ids)
            .order("created_at", desc=True),
        )
        return [] if response is None else self._parse_rows(response.data)


class SupabaseCategoryCollection(SupabaseCollection[BudgetCategory]):
    """Categories are upserted: the seeded ids exist on every device."""

    async def list(self) -> list[BudgetCategory]:
        user_id = self._owner.user_id
        if not user_id:
            return []
        response = await self._owner.execute(
            self._spec, "list", None,
            lambda: self._scope(self._table().select("*"), user_id),
        )
        return [] if response is None else self._parse_rows(response.data)

    async def create(self, entity: BudgetCategory) -> Optional[BudgetCategory]:
        user_id = self._owner.user_id
        if not user_id:
            return None
        row = entity_to_row(self._spec, entity, user_id)
        response = await self._owner.execute(
            self._spec, "upsert", entity.id, lambda: self._table().upsert(row)
        )
        if response is None:
            return None
        created = self._parse_rows(response.data)
        return created[0] if created else entity


class SupabaseSyncClient(RemoteSyncInterface):
    """
    Remote sync over Supabase.

    Usage:
        client = await SupabaseSyncClient.connect(settings.supabase)
        await client.sign_in(email, password)
        events = await client.events.list()
    """

    def __init__(
        self,
        client: AsyncClient,
        settings: SupabaseSettings,
        audit: Optional[AuditLogger] = None,
    ):
        self._client = client
        self._settings = settings
        self._audit = audit or AuditLogger()
        self._user_id: Optional[str] = None
        self._channels: dict[str, Any] = {}

        self._events: SupabaseCollection[Event] = SupabaseCollection(self, EVENTS_TABLE)
        self._projects = SupabaseProjectCollection(self, PROJECTS_TABLE)
        self._tasks = SupabaseTaskCollection(self, TASKS_TABLE)
        self._categories = SupabaseCategoryCollection(self, BUDGET_CATEGORIES_TABLE)
        self._expenses: SupabaseCollection[BudgetExpense] = SupabaseCollection(
            self, BUDGET_EXPENSES_TABLE
        )

    @classmethod
    async def connect(
        cls,
        settings: SupabaseSettings,
        audit: Optional[AuditLogger] = None,
    ) -> "SupabaseSyncClient":
        """Create the underlying async client. Raises if the URL/key are rejected."""
        client = await acreate_client(settings.url, settings.anon_key)
        return cls(client, settings, audit=audit)

    # =========================================================================
    # SESSION
    # =========================================================================

    @property
    def client(self) -> AsyncClient:
        return self._client

    @property
    def is_enabled(self) -> bool:
        return True

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    def set_user_id(self, user_id: Optional[str]) -> None:
        self._user_id = user_id

    async def sign_in(self, email: str, password: str) -> Optional[str]:
        """
        Password sign-in. Scopes the client to the signed-in user.

        Returns:
            The user id, or None if sign-in failed
        """
        try:
            response = await self._client.auth.sign_in_with_password(
                {"email": email, "password": password}
            )
        except Exception as e:
            logger.warning("remote_sign_in_failed", error=str(e))
            self._audit.log_error("remote_sign_in_failed", str(e))
            return None
        user = getattr(response, "user", None)
        if user is None:
            return None
        self.set_user_id(user.id)
        logger.info("remote_signed_in", user_id=user.id)
        return user.id

    async def sign_out(self) -> None:
        """Close channels, end the backend session and forget the user."""
        await self.unsubscribe_all()
        try:
            await self._client.auth.sign_out()
        except Exception as e:
            logger.warning("remote_sign_out_failed", error=str(e))
        self.set_user_id(None)

    # =========================================================================
    # COLLECTIONS
    # =========================================================================

    @property
    def events(self) -> SupabaseCollection[Event]:
        return self._events

    @property
    def projects(self) -> SupabaseProjectCollection:
        return self._projects

    @property
    def tasks(self) -> SupabaseTaskCollection:
        return self._tasks

    @property
    def budget_categories(self) -> SupabaseCategoryCollection:
        return self._categories

    @property
    def budget_expenses(self) -> SupabaseCollection[BudgetExpense]:
        return self._expenses

    async def share_project(self, project_id: str, user_ids: list[str]) -> bool:
        if not self._user_id:
            return False
        response = await self.execute(
            PROJECTS_TABLE, "share", project_id,
            lambda: self._client.table(PROJECTS_TABLE.table)
            .update({"shared_with": list(user_ids)})
            .eq("id", project_id),
        )
        return response is not None

    async def execute(
        self,
        spec: TableSpec,
        action: str,
        entity_id: Optional[str],
        build_query: Callable[[], Any],
    ) -> Optional[Any]:
        """
        Run a query with retries.

        Returns:
            The API response, or None once every attempt has failed
        """
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._settings.retry_attempts),
                wait=wait_exponential(
                    multiplier=0.5, max=self._settings.retry_max_wait_seconds
                ),
                reraise=True,
            ):
                with attempt:
                    response = await build_query().execute()
            return response
        except Exception as e:
            logger.warning(
                "remote_call_failed",
                table=spec.table,
                action=action,
                id=entity_id,
                error=str(e),
            )
            self._audit.log_push_failed(spec.entity_type, entity_id, action, str(e))
            return None

    # =========================================================================
    # REALTIME
    # =========================================================================

    async def subscribe_to_events(self, callback: EventCallback) -> bool:
        """
        Open the event-change channel for the current user.

        One channel per process: subscribing again replaces the old one.
        """
        user_id = self._user_id
        if not user_id or not self._settings.realtime_enabled:
            return False
        await self._remove_channel(EVENTS_CHANNEL)

        try:
            channel = self._client.channel(f"{EVENTS_CHANNEL}:{user_id}")
            channel.on_postgres_changes(
                event="*",
                schema="public",
                table=EVENTS_TABLE.table,
                filter=f"user_id=eq.{user_id}",
                callback=lambda payload: self._on_event_change(payload, callback),
            )
            await channel.subscribe()
        except Exception as e:
            logger.warning("realtime_subscribe_failed", channel=EVENTS_CHANNEL, error=str(e))
            self._audit.log_error("realtime_subscribe_failed", str(e))
            return False

        self._channels[EVENTS_CHANNEL] = channel
        self._audit.log(AuditEventBuilder.realtime_subscribed(EVENTS_CHANNEL))
        return True

    def _on_event_change(self, payload: dict[str, Any], callback: EventCallback) -> None:
        change_type, record = parse_realtime_payload(payload)
        if change_type not in ("INSERT", "UPDATE") or record is None:
            return
        try:
            event = row_to_entity(EVENTS_TABLE, record)
        except ValidationError as e:
            logger.warning("realtime_payload_invalid", errors=e.error_count())
            return
        try:
            callback(event)
        except Exception as e:
            logger.error("realtime_callback_failed", id=event.id, error=str(e))

    async def unsubscribe_all(self) -> None:
        names = list(self._channels)
        for name in names:
            await self._remove_channel(name)
        if names:
            self._audit.log(AuditEventBuilder.realtime_unsubscribed(names))

    async def _remove_channel(self, name: str) -> None:
        channel = self._channels.pop(name, None)
        if channel is None:
            return
        try:
            await self._client.remove_channel(channel)
        except Exception as e:
            logger.warning("realtime_unsubscribe_failed", channel=name, error=str(e))
