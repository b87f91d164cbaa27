"""Pytest fixtures for testing"""

import pytest
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import AsyncGenerator, Generator
from fastapi.testclient import TestClient
from bnpl_tracker.api.main import create_app
from bnpl_tracker.config import Settings
from bnpl_tracker.domain.models import Order, OrderType, Payment
from bnpl_tracker.infrastructure.backup import BackupMirror
from bnpl_tracker.infrastructure.database.store import LocalStore
from bnpl_tracker.services.orders import OrderService
from bnpl_tracker.services.platforms import PlatformService
from bnpl_tracker.services.sweeper import OverdueSweeper


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Settings pointing at a throwaway database and backup file"""
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        backup_path=str(tmp_path / "backup.json"),
        overdue_sweep_interval_seconds=3600.0,
        log_level="WARNING",
    )


@pytest.fixture
async def make_store(test_settings: Settings):
    """Factory for stores sharing the test database and backup file; all are closed on teardown"""
    created = []

    def _make(store_cls=LocalStore, **overrides) -> LocalStore:
        store = store_cls(
            database_url=overrides.get("database_url", test_settings.database_url),
            mirror=overrides.get("mirror")
            or BackupMirror(test_settings.backup_path, overrides.get("backup_max_bytes", test_settings.backup_max_bytes)),
            schema_version=overrides.get("schema_version", test_settings.schema_version),
        )
        created.append(store)
        return store

    yield _make

    for store in created:
        await store.close()


@pytest.fixture
async def store(make_store) -> AsyncGenerator[LocalStore, None]:
    """Initialized store on a fresh database"""
    store = make_store()
    await store.initialize()
    yield store


@pytest.fixture
def order_service(store: LocalStore) -> OrderService:
    return OrderService(store, OverdueSweeper(store))


@pytest.fixture
def platform_service(store: LocalStore) -> PlatformService:
    return PlatformService(store)


@pytest.fixture
def client(test_settings: Settings) -> Generator[TestClient, None, None]:
    """FastAPI test client; the context manager runs the app lifespan"""
    app = create_app(test_settings)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def sample_order() -> Order:
    return Order(
        id="order-1",
        platform_id="afterpay",
        total_amount=40000,
        first_payment_date=date(2030, 1, 1),
        created_at=datetime(2029, 12, 20, 15, 30, tzinfo=timezone.utc),
        store_name="Target",
        tags=["household"],
        order_type=OrderType.PERSONAL,
    )


@pytest.fixture
def sample_payments(sample_order: Order) -> list[Payment]:
    return [
        Payment(
            id=f"payment-{n}",
            order_id=sample_order.id,
            platform_id=sample_order.platform_id,
            amount=10000,
            due_date=date(2030, 1, 1) + timedelta(days=14 * (n - 1)),
            installment_number=n,
        )
        for n in range(1, 5)
    ]
