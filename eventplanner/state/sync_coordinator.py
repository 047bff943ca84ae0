"""
Sync Coordinator

Connects the planner to a remote sync client in both directions.

OUTBOUND: every local mutation is pushed as a background task. Pushes
for the same entity are chained so a create always reaches the backend
before its updates. Mirrored expenses are derived on each device and are
never pushed. A failed push is already logged and audited by the client;
local state is never rolled back.

INBOUND: realtime events and full pulls go through
`PlannerStore.merge_remote`, the same path as local mutations. Realtime
callbacks are marshalled onto the event loop and applied one at a time,
so they cannot interleave with a local mutation.

CANCELLATION: each realtime merge carries the session generation it was
received under. Changing the selected event or ending the session bumps
the generation, and merges queued under an older one are dropped.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional

import structlog

from eventplanner.models.planner import BudgetExpense, PlannerEntity
from eventplanner.services.sync import RemoteSyncInterface
from eventplanner.state.repository import (
    ChangeAction,
    EntityKind,
    PlannerChange,
    PlannerStore,
)


logger = structlog.get_logger(__name__)

# Parents first, so references resolve as records arrive
PULL_ORDER = (
    EntityKind.EVENT,
    EntityKind.PROJECT,
    EntityKind.BUDGET_CATEGORY,
    EntityKind.TASK,
    EntityKind.BUDGET_EXPENSE,
)


class SyncCoordinator:
    """Pushes local changes and merges remote ones for one session."""

    def __init__(self, planner: PlannerStore, client: RemoteSyncInterface):
        self._planner = planner
        self._client = client
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._generation = 0
        self._active = False
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._pending: set[asyncio.Task] = set()
        self._tails: dict[tuple[str, str], asyncio.Task] = {}

    @property
    def client(self) -> RemoteSyncInterface:
        return self._client

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def generation(self) -> int:
        return self._generation

    async def start_session(self, pull: bool = True) -> None:
        """
        Begin pushing local changes, optionally pull everything once,
        and open the realtime channel.
        """
        if self._active:
            return
        self._loop = asyncio.get_running_loop()
        self._generation += 1
        self._active = True
        self._unsubscribe = self._planner.subscribe(self._on_local_change)
        if not self._client.is_enabled:
            logger.info("sync_session_local_only")
            return
        if pull:
            await self.pull_all()
        await self._client.subscribe_to_events(self._on_remote_event)

    async def end_session(self) -> None:
        """
        Stop syncing: drop queued realtime merges, cancel pending pushes
        and close every realtime channel.
        """
        self._active = False
        self._generation += 1
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

        pending = list(self._pending)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._tails.clear()

        await self._client.unsubscribe_all()
        logger.info("sync_session_ended", cancelled_pushes=len(pending))

    async def flush(self) -> None:
        """Wait for every scheduled push to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # =========================================================================
    # INBOUND
    # =========================================================================

    async def pull_all(self) -> int:
        """
        Merge every remote record into the planner (last write wins).

        Returns:
            Number of records that were inserted or changed locally
        """
        merged = 0
        generation = self._generation
        for kind in PULL_ORDER:
            records = await self._client.collection_for(kind.value).list()
            if generation != self._generation:
                logger.info("remote_pull_abandoned", entity_type=kind.value)
                return merged
            for record in records:
                before = _lookup(self._planner, kind, record.id)
                result = self._planner.merge_remote(record)
                if result is not None and result is not before:
                    merged += 1
        logger.info("remote_pull_completed", merged=merged)
        return merged

    def _on_remote_event(self, entity: PlannerEntity) -> None:
        # May be called from the realtime client's own thread
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._apply_remote, entity, self._generation)

    def _apply_remote(self, entity: PlannerEntity, generation: int) -> None:
        if not self._active or generation != self._generation:
            logger.debug("remote_merge_discarded", id=entity.id)
            return
        self._planner.merge_remote(entity)

    # =========================================================================
    # OUTBOUND
    # =========================================================================

    def _on_local_change(self, change: PlannerChange) -> None:
        if change.entity_type == EntityKind.SELECTED_EVENT:
            self._generation += 1
            return
        if change.origin != "local" or not self._client.is_enabled:
            return
        if isinstance(change.entity, BudgetExpense) and change.entity.is_task_mirror:
            return
        push = self._push_for(change)
        if push is not None:
            self._schedule((change.entity_type.value, change.entity_id), push)

    def _push_for(self, change: PlannerChange) -> Optional[Callable[[], Awaitable[Any]]]:
        collection = self._client.collection_for(change.entity_type.value)
        entity = change.entity
        if change.action == ChangeAction.CREATED:
            return lambda: collection.create(entity)
        if change.action == ChangeAction.UPDATED:
            if change.entity_type == EntityKind.BUDGET_CATEGORY:
                # Upsert: seeded categories may not exist remotely yet
                return lambda: collection.create(entity)
            return lambda: collection.update(entity.id, entity.model_dump())
        if change.action == ChangeAction.DELETED:
            return lambda: collection.delete(entity.id)
        return None

    def _schedule(self, key: tuple[str, str], push: Callable[[], Awaitable[Any]]) -> None:
        previous = self._tails.get(key)
        task = asyncio.get_running_loop().create_task(self._run_push(key, push, previous))
        self._tails[key] = task
        self._pending.add(task)
        task.add_done_callback(lambda done: self._push_finished(key, done))

    async def _run_push(
        self,
        key: tuple[str, str],
        push: Callable[[], Awaitable[Any]],
        previous: Optional[asyncio.Task],
    ) -> None:
        if previous is not None and not previous.done():
            await asyncio.wait({previous})
        try:
            result = await push()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # Clients convert failures to values; anything else is a bug
            logger.error("remote_push_crashed", entity_type=key[0], id=key[1], error=str(e))
            return
        if result is None or result is False:
            logger.info("remote_push_not_applied", entity_type=key[0], id=key[1])

    def _push_finished(self, key: tuple[str, str], task: asyncio.Task) -> None:
        self._pending.discard(task)
        if self._tails.get(key) is task:
            del self._tails[key]


def _lookup(planner: PlannerStore, kind: EntityKind, entity_id: str) -> Optional[PlannerEntity]:
    getters = {
        EntityKind.EVENT: planner.get_event,
        EntityKind.PROJECT: planner.get_project,
        EntityKind.TASK: planner.get_task,
        EntityKind.BUDGET_CATEGORY: planner.get_budget_category,
        EntityKind.BUDGET_EXPENSE: planner.get_budget_expense,
    }
    return getters[kind](entity_id)
