"""Dependency injection for FastAPI endpoints"""

from fastapi import Depends, Request

from bnpl_tracker.infrastructure.database.store import LocalStore
from bnpl_tracker.services.orders import OrderService
from bnpl_tracker.services.platforms import PlatformService
from bnpl_tracker.services.sweeper import OverdueSweeper


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_store(request: Request) -> LocalStore:
    """Store opened by the application lifespan"""
    return request.app.state.store


def get_sweeper(store: LocalStore = Depends(get_store)) -> OverdueSweeper:
    return OverdueSweeper(store)


def get_order_service(
    store: LocalStore = Depends(get_store),
    sweeper: OverdueSweeper = Depends(get_sweeper),
) -> OrderService:
    return OrderService(store, sweeper)


def get_platform_service(store: LocalStore = Depends(get_store)) -> PlatformService:
    return PlatformService(store)
