from __future__ import annotations

from fastapi import APIRouter, Depends

from vendafacil.core.metrics import request_metrics
from vendafacil.deps import get_current_member
from vendafacil.models.store_member import StoreMember
from vendafacil.services.realtime import realtime_hub

router = APIRouter(prefix="/internal/metrics", tags=["internal-metrics"])


@router.get("")
def metrics(_member: StoreMember = Depends(get_current_member)):
    snapshot = request_metrics.snapshot()
    snapshot["realtime_subscribers"] = realtime_hub.subscriber_count()
    return snapshot
