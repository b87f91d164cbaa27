"""
Local store - versioned transactional persistence for the five collections.

Lifecycle:
    store = LocalStore.from_settings(settings)
    await store.initialize()     # open, upgrade, recover from mirror, seed defaults
    dataset = await store.load_dataset()
    ...
    await store.close()

Every successful mutation schedules a refresh of the backup mirror. Refreshes
run in the background, never raise into the caller, and are serialized by a
lock; wait_for_backup() awaits the ones in flight.

Compound writes (add_order, delete_order) are sequential, not isolated: a
concurrent reader can see an order with only part of its payments.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import replace
from enum import Enum
from typing import Any, List, Mapping, Optional, Sequence, Set, Tuple, Union

from sqlalchemy import delete, inspect, select
from sqlalchemy.exc import SQLAlchemyError

from bnpl_tracker.config import Settings
from bnpl_tracker.domain.defaults import default_platforms, default_subscriptions
from bnpl_tracker.domain.exceptions import (
    BackupQuotaExceededError,
    SnapshotValidationError,
    StorageError,
    StoreNotInitializedError,
)
from bnpl_tracker.domain.migrations import migrate_to_v2
from bnpl_tracker.domain.models import Dataset, Order, Payment
from bnpl_tracker.domain.snapshot import Snapshot, validate_snapshot
from bnpl_tracker.infrastructure.backup import BackupMirror
from bnpl_tracker.infrastructure.database.models import Base, StoreMeta
from bnpl_tracker.infrastructure.database.repositories import MAPPINGS, Collection, CollectionMapping
from bnpl_tracker.infrastructure.database.session import DatabaseSessionManager
from bnpl_tracker.infrastructure.observability.metrics import (
    backup_refresh_counter,
    backup_restore_counter,
    compound_rollback_counter,
    record_storage_operation,
    snapshot_import_counter,
)

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2
_SCHEMA_VERSION_KEY = "schema_version"


class StoreMode(str, Enum):
    """What the current call chain is doing; decides recovery, seeding and mirror writes"""

    NORMAL = "normal"  # startup: recover from mirror, then seed defaults
    IMPORTING = "importing"  # no recovery, no seeding; fresh mirror once applied
    RESTORING = "restoring"  # no recovery, no seeding, mirror left untouched
    CLEARING = "clearing"  # no recovery; reseed defaults


def _read_schema_version(sync_conn) -> int:
    if not inspect(sync_conn).has_table(StoreMeta.__tablename__):
        return 0
    value = sync_conn.execute(
        select(StoreMeta.value).where(StoreMeta.key == _SCHEMA_VERSION_KEY)
    ).scalar_one_or_none()
    return int(value) if value is not None else 0


def _write_schema_version(sync_conn, version: int) -> None:
    table = StoreMeta.__table__
    sync_conn.execute(delete(table).where(table.c.key == _SCHEMA_VERSION_KEY))
    sync_conn.execute(table.insert().values(key=_SCHEMA_VERSION_KEY, value=str(version)))


def _table_names(sync_conn) -> List[str]:
    return inspect(sync_conn).get_table_names()


class LocalStore:
    """Primary store for orders, payments, platforms, subscriptions and limit history"""

    def __init__(self, database_url: str, mirror: BackupMirror, schema_version: int = SCHEMA_VERSION):
        self.database_url = database_url
        self.mirror = mirror
        self.schema_version = schema_version

        self._db: Optional[DatabaseSessionManager] = None
        self._available: Set[str] = set()
        self._opened = False
        self._ready = False
        self._init_task: Optional[asyncio.Future] = None
        self._backup_lock = asyncio.Lock()
        self._pending_backups: Set[asyncio.Future] = set()

    @classmethod
    def from_settings(cls, settings: Settings) -> "LocalStore":
        return cls(
            database_url=settings.database_url,
            mirror=BackupMirror(settings.backup_path, settings.backup_max_bytes),
            schema_version=settings.schema_version,
        )

    @property
    def is_ready(self) -> bool:
        return self._ready

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """
        Open the store and make it ready for use.

        Concurrent callers share a single in-flight open sequence; the task is
        assigned before the first await so the upgrade and seeding run once.
        A failed open is forgotten so a later call can retry.
        """
        if self._ready:
            return
        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._open_and_prepare())
        task = self._init_task
        try:
            await task
        except Exception:
            if self._init_task is task:
                self._init_task = None
            raise

    async def close(self) -> None:
        await self.wait_for_backup()
        if self._db is not None:
            await self._db.dispose()
        self._db = None
        self._opened = False
        self._ready = False
        self._init_task = None

    async def _open_and_prepare(self) -> None:
        if self._db is None:
            self._db = DatabaseSessionManager(self.database_url)
        await self._upgrade()
        await self._prepare_dataset(StoreMode.NORMAL)
        self._ready = True
        logger.info("Store ready", extra={"schema_version": self.schema_version})

    async def _upgrade(self) -> None:
        """Additive-only upgrade: create missing tables and indexes, never drop"""
        try:
            async with self._db.engine.begin() as conn:
                on_disk = await conn.run_sync(_read_schema_version)
                if on_disk < self.schema_version:
                    tables = [
                        table
                        for table in Base.metadata.sorted_tables
                        if table.info.get("since_version", 1) <= self.schema_version
                    ]
                    await conn.run_sync(Base.metadata.create_all, tables=tables)
                    await conn.run_sync(_write_schema_version, self.schema_version)
                    logger.info(
                        "Upgraded store schema",
                        extra={"from_version": on_disk, "to_version": self.schema_version},
                    )
                elif on_disk > self.schema_version:
                    logger.warning(
                        "Store was written by a newer schema version",
                        extra={"on_disk_version": on_disk, "target_version": self.schema_version},
                    )
                self._available = set(await conn.run_sync(_table_names))
        except SQLAlchemyError as e:
            logger.error(f"Failed to open store: {e}")
            raise StorageError("Failed to open store", "open") from e
        self._opened = True

    async def _ensure_open(self) -> None:
        if self._opened:
            return
        if self._init_task is not None:
            await self._init_task
            return
        raise StoreNotInitializedError("Store is not initialized; await initialize() first")

    async def _prepare_dataset(self, mode: StoreMode) -> None:
        """Recovery and seeding, as allowed by mode"""
        if mode is StoreMode.NORMAL:
            await self._recover_from_backup()
        if mode in (StoreMode.NORMAL, StoreMode.CLEARING):
            await self._seed_defaults()

    async def _recover_from_backup(self) -> bool:
        orders = await self.get_all(Collection.ORDERS)
        payments = await self.get_all(Collection.PAYMENTS)
        platforms = await self.get_all(Collection.PLATFORMS)
        if orders or payments or platforms:
            return False

        try:
            backup = await self.mirror.read()
            if backup is None or not (backup.orders or backup.payments):
                return False

            logger.info(
                "Store empty, restoring from backup mirror",
                extra={"orders": len(backup.orders), "payments": len(backup.payments)},
            )
            await self._apply_snapshot(backup, StoreMode.RESTORING)
        except Exception as e:
            backup_restore_counter.labels(outcome="error").inc()
            logger.error(f"Failed to restore from backup: {e}")
            return False

        backup_restore_counter.labels(outcome="ok").inc()
        logger.info("Restored from backup successfully")
        return True

    async def _seed_defaults(self) -> None:
        """Fill empty platforms/subscriptions without touching the mirror"""
        try:
            if not await self.get_all(Collection.PLATFORMS):
                logger.info("Initializing default platforms")
                for platform in default_platforms():
                    await self.put(Collection.PLATFORMS, platform, refresh_backup=False)

            if not await self.get_all(Collection.SUBSCRIPTIONS):
                logger.info("Initializing default subscriptions")
                for subscription in default_subscriptions():
                    await self.put(Collection.SUBSCRIPTIONS, subscription, refresh_backup=False)
        except StorageError as e:
            logger.error(f"Failed to seed defaults: {e}")

    # ------------------------------------------------------------------
    # Entity CRUD
    # ------------------------------------------------------------------

    def _mapping(self, collection: Union[Collection, str]) -> CollectionMapping:
        return MAPPINGS[Collection(collection)]

    def _has(self, mapping: CollectionMapping) -> bool:
        return mapping.table_name in self._available

    @asynccontextmanager
    async def _transaction(self, mapping: CollectionMapping, operation: str):
        name = mapping.collection.value
        try:
            async with self._db.transaction(f"{operation}:{name}") as session:
                yield session
        except StorageError:
            record_storage_operation(name, operation, ok=False)
            raise
        record_storage_operation(name, operation, ok=True)

    async def get_all(self, collection: Union[Collection, str]) -> List[Any]:
        await self._ensure_open()
        mapping = self._mapping(collection)
        if not self._has(mapping):
            logger.warning(f"Store '{mapping.collection.value}' does not exist, returning empty list")
            return []
        async with self._transaction(mapping, "get_all") as session:
            result = await session.execute(select(mapping.row_type).order_by(mapping.key_column()))
            return [mapping.to_entity(row) for row in result.scalars().all()]

    async def get(self, collection: Union[Collection, str], key: str) -> Optional[Any]:
        await self._ensure_open()
        mapping = self._mapping(collection)
        if not self._has(mapping):
            return None
        async with self._transaction(mapping, "get") as session:
            row = await session.get(mapping.row_type, key)
            return mapping.to_entity(row) if row is not None else None

    async def get_by_index(self, collection: Union[Collection, str], index_name: str, value: Any) -> List[Any]:
        await self._ensure_open()
        mapping = self._mapping(collection)
        column = mapping.index_column(index_name)
        if not self._has(mapping):
            logger.warning(f"Store '{mapping.collection.value}' does not exist, returning empty list")
            return []
        async with self._transaction(mapping, "get_by_index") as session:
            result = await session.execute(
                select(mapping.row_type).where(column == value).order_by(mapping.key_column())
            )
            return [mapping.to_entity(row) for row in result.scalars().all()]

    async def put(self, collection: Union[Collection, str], entity: Any, refresh_backup: bool = True) -> None:
        """
        Upsert one entity by primary key.

        refresh_backup=False is for seeding built-in defaults, where a mirror
        refresh could clobber a backup that is about to be restored.
        """
        await self._ensure_open()
        mapping = self._mapping(collection)
        if not self._has(mapping):
            logger.warning(f"Store '{mapping.collection.value}' does not exist, skipping save")
            return
        async with self._transaction(mapping, "put") as session:
            await session.merge(mapping.to_row(entity))
        logger.debug(
            f"Saved to {mapping.collection.value}",
            extra={"collection": mapping.collection.value, "key": mapping.key_of(entity)},
        )
        if refresh_backup:
            self.schedule_backup()

    async def delete(self, collection: Union[Collection, str], key: str, refresh_backup: bool = True) -> None:
        await self._ensure_open()
        mapping = self._mapping(collection)
        if not self._has(mapping):
            logger.warning(f"Store '{mapping.collection.value}' does not exist, skipping delete")
            return
        async with self._transaction(mapping, "delete") as session:
            await session.execute(delete(mapping.row_type).where(mapping.key_column() == key))
        logger.debug(
            f"Deleted from {mapping.collection.value}",
            extra={"collection": mapping.collection.value, "key": key},
        )
        if refresh_backup:
            self.schedule_backup()

    async def _bulk_put(self, collection: Collection, entities: Sequence[Any]) -> None:
        if not entities:
            return
        mapping = self._mapping(collection)
        if not self._has(mapping):
            logger.warning(f"Store '{mapping.collection.value}' does not exist, skipping batch insert")
            return
        async with self._transaction(mapping, "bulk_put") as session:
            for entity in entities:
                await session.merge(mapping.to_row(entity))
        logger.info(f"Batch inserted {len(entities)} items into {mapping.collection.value}")

    async def _clear_collections(self, mode: StoreMode) -> None:
        for collection in Collection:
            mapping = self._mapping(collection)
            if not self._has(mapping):
                logger.warning(f"Store '{collection.value}' does not exist, skipping clear")
                continue
            async with self._transaction(mapping, "clear") as session:
                await session.execute(delete(mapping.row_type))
        await self._prepare_dataset(mode)

    # ------------------------------------------------------------------
    # Compound operations
    # ------------------------------------------------------------------

    async def add_order(self, order: Order, payments: Sequence[Payment]) -> None:
        """
        Write an order and then each of its payments.

        On failure, everything written so far is deleted in reverse order and
        the original error is re-raised. The rollback is best effort: if a
        compensating delete fails too, the order is re-saved flagged
        needs_repair so the partial write is visible rather than ambiguous.
        """
        written: List[Tuple[Collection, str]] = []
        try:
            await self.put(Collection.ORDERS, order)
            written.append((Collection.ORDERS, order.id))
            for payment in payments:
                await self.put(Collection.PAYMENTS, payment)
                written.append((Collection.PAYMENTS, payment.id))
        except Exception:
            logger.error(
                "addOrder failed, rolling back",
                extra={"order_id": order.id, "written": len(written)},
            )
            await self._roll_back(order, written)
            raise

    async def _roll_back(self, order: Order, written: List[Tuple[Collection, str]]) -> None:
        failed = 0
        for collection, key in reversed(written):
            try:
                await self.delete(collection, key)
            except Exception as e:
                failed += 1
                logger.error(
                    f"Rollback delete failed: {e}",
                    extra={"collection": collection.value, "key": key},
                )

        if not failed:
            compound_rollback_counter.labels(outcome="complete").inc()
            return

        compound_rollback_counter.labels(outcome="incomplete").inc()
        flagged = replace(order, needs_repair=True)
        try:
            await self.put(Collection.ORDERS, flagged)
        except Exception as e:
            logger.error(f"Could not flag order for repair: {e}", extra={"order_id": order.id})
        else:
            logger.warning("Order left partially written, flagged for repair", extra={"order_id": order.id})

    async def delete_order(self, order_id: str) -> None:
        """Delete an order's payments, then the order; any failure leaves the order in place"""
        payments = await self.get_by_index(Collection.PAYMENTS, "by-order", order_id)
        try:
            for payment in payments:
                await self.delete(Collection.PAYMENTS, payment.id)
            await self.delete(Collection.ORDERS, order_id)
        except Exception:
            logger.error("deleteOrder failed", extra={"order_id": order_id})
            raise

    # ------------------------------------------------------------------
    # Dataset load, export and import
    # ------------------------------------------------------------------

    async def _read_dataset(self) -> Dataset:
        return Dataset(
            orders=await self.get_all(Collection.ORDERS),
            payments=await self.get_all(Collection.PAYMENTS),
            platforms=await self.get_all(Collection.PLATFORMS),
            subscriptions=await self.get_all(Collection.SUBSCRIPTIONS),
            limit_history=await self.get_all(Collection.LIMIT_HISTORY),
        )

    async def load_dataset(self) -> Dataset:
        """
        Read everything and bring it up to the current schema.

        Only collections the migration actually changed are written back;
        a failed write-back is logged and the migrated data is still returned.
        """
        dataset = await self._read_dataset()
        result = migrate_to_v2(dataset.orders, dataset.platforms)
        dataset.orders = result.orders
        dataset.platforms = result.platforms

        changed = []
        if result.orders_changed:
            changed.append((Collection.ORDERS, result.orders))
        if result.platforms_changed:
            changed.append((Collection.PLATFORMS, result.platforms))

        if changed:
            try:
                for collection, entities in changed:
                    for entity in entities:
                        await self.put(collection, entity, refresh_backup=False)
            except StorageError as e:
                logger.error(f"Failed to persist migrated data: {e}")
            else:
                logger.info("Migrated data to v2", extra={"collections": [c.value for c, _ in changed]})
                self.schedule_backup()

        logger.info(
            "Loaded dataset",
            extra={
                "orders": len(dataset.orders),
                "payments": len(dataset.payments),
                "platforms": len(dataset.platforms),
                "subscriptions": len(dataset.subscriptions),
            },
        )
        return dataset

    async def export_snapshot(self) -> Snapshot:
        return Snapshot.from_dataset(await self._read_dataset())

    async def import_snapshot(self, data: Union[Mapping[str, Any], Snapshot]) -> Snapshot:
        """
        Replace the whole dataset with a validated snapshot.

        Validation happens before storage is touched. The store is then
        cleared and every collection bulk-inserted; only once that succeeds is
        the old mirror discarded and a fresh one written, so a failure midway
        leaves the pre-import mirror available for recovery.

        Raises:
            SnapshotValidationError: snapshot rejected, nothing changed
            StorageError: apply failed partway
        """
        await self._ensure_open()
        try:
            snapshot = validate_snapshot(data.to_json() if isinstance(data, Snapshot) else data)
        except SnapshotValidationError as e:
            snapshot_import_counter.labels(outcome="rejected").inc()
            logger.warning(f"Import rejected: {e}")
            raise

        logger.info(
            "Importing data",
            extra={"version": snapshot.version, "orders": len(snapshot.orders), "payments": len(snapshot.payments)},
        )
        try:
            await self._apply_snapshot(snapshot, StoreMode.IMPORTING)
        except Exception:
            snapshot_import_counter.labels(outcome="error").inc()
            raise
        snapshot_import_counter.labels(outcome="ok").inc()
        return snapshot

    async def _apply_snapshot(self, snapshot: Snapshot, mode: StoreMode) -> None:
        dataset = snapshot.to_dataset()
        # Held throughout so a queued refresh cannot mirror a half-applied store
        async with self._backup_lock:
            await self._clear_collections(mode)
            await self._bulk_put(Collection.PLATFORMS, dataset.platforms)
            await self._bulk_put(Collection.SUBSCRIPTIONS, dataset.subscriptions)
            await self._bulk_put(Collection.ORDERS, dataset.orders)
            await self._bulk_put(Collection.PAYMENTS, dataset.payments)
            await self._bulk_put(Collection.LIMIT_HISTORY, dataset.limit_history)

            if mode is StoreMode.IMPORTING:
                await self.mirror.discard()
                await self._write_backup()

    async def clear_all_data(self) -> None:
        """Empty every collection, reseed the defaults and mirror the result"""
        await self._ensure_open()
        async with self._backup_lock:
            await self._clear_collections(StoreMode.CLEARING)
            await self._write_backup()
        logger.info("Cleared all data")

    # ------------------------------------------------------------------
    # Backup mirror
    # ------------------------------------------------------------------

    def schedule_backup(self) -> asyncio.Future:
        """Start a mirror refresh in the background; the returned task can be awaited"""
        task = asyncio.ensure_future(self._refresh_backup())
        self._pending_backups.add(task)
        task.add_done_callback(self._pending_backups.discard)
        return task

    async def wait_for_backup(self) -> None:
        while self._pending_backups:
            await asyncio.gather(*list(self._pending_backups))

    async def _refresh_backup(self) -> None:
        async with self._backup_lock:
            await self._write_backup()

    async def _write_backup(self) -> None:
        # Primary store stays the source of truth: mirror failures never propagate
        try:
            snapshot = await self.export_snapshot()
            await self.mirror.write(snapshot)
        except BackupQuotaExceededError as e:
            backup_refresh_counter.labels(outcome="quota_exceeded").inc()
            logger.error(f"Backup failed - storage quota exceeded: {e}")
            return
        except Exception as e:
            backup_refresh_counter.labels(outcome="error").inc()
            logger.error(f"Failed to refresh backup: {e}")
            return
        backup_refresh_counter.labels(outcome="ok").inc()
        logger.debug("Backup saved", extra={"path": str(self.mirror.path)})
