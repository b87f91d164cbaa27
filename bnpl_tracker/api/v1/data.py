"""Whole-dataset endpoints: export, import and the overdue sweep"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, Request

from bnpl_tracker.api.dependencies import get_request_id, get_store, get_sweeper
from bnpl_tracker.api.v1.schemas import ImportResponse, SweepResponse
from bnpl_tracker.domain.snapshot import PaymentRecord
from bnpl_tracker.infrastructure.database.store import LocalStore
from bnpl_tracker.services.sweeper import OverdueSweeper

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/export")
async def export_data(store: LocalStore = Depends(get_store)) -> Dict[str, Any]:
    """Current dataset as a version 2 snapshot"""
    snapshot = await store.export_snapshot()
    return snapshot.to_json()


@router.post("/import", response_model=ImportResponse)
async def import_data(
    request: Request,
    payload: Any = Body(...),
    store: LocalStore = Depends(get_store),
):
    """
    Replace all data with an exported snapshot.

    The snapshot is validated before anything is written; a rejected
    snapshot (422) leaves the store untouched.
    """
    snapshot = await store.import_snapshot(payload)
    logger.info("Snapshot imported", extra={"request_id": get_request_id(request), "version": snapshot.version})
    return ImportResponse(
        version=snapshot.version,
        orders=len(snapshot.orders),
        payments=len(snapshot.payments),
        platforms=len(snapshot.platforms),
        subscriptions=len(snapshot.subscriptions),
        limit_history=len(snapshot.limit_history),
    )


@router.post("/sweep", response_model=SweepResponse)
async def run_sweep(sweeper: OverdueSweeper = Depends(get_sweeper)):
    changed = await sweeper.run()
    return SweepResponse(marked_overdue=len(changed), payments=[PaymentRecord.from_entity(p) for p in changed])
