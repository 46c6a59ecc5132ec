from __future__ import annotations

import time
from typing import List, Optional

from fastapi import APIRouter, Request

from ..api_models import HealthResponse, StatusResponse

router = APIRouter()


def _compute_warnings(last_update_age_s: Optional[float], state: str, reference_count: int) -> List[str]:
    """
    Warning codes for /api/healthz.
    Thresholds: no snapshot or >10s => status_offline; >2s while detecting => status_stale.
    """
    warnings: List[str] = []
    if last_update_age_s is None or last_update_age_s > 10:
        warnings.append("status_offline")
    elif state == "detecting" and last_update_age_s > 2:
        warnings.append("status_stale")
    if reference_count == 0:
        warnings.append("no_references")
    return warnings


def _age(updated_at: Optional[float]) -> Optional[float]:
    if updated_at is None:
        return None
    return round(time.time() - updated_at, 3)


@router.get("/status", response_model=StatusResponse)
def status(request: Request):
    board = request.app.state.status_board
    snap = board.snapshot()
    return StatusResponse(
        state=snap.state.value,
        passed=snap.passed,
        decided=snap.decided,
        present=snap.present,
        output=snap.output,
        text=snap.text,
        best_inliers=snap.best_inliers,
        best_score=snap.best_score,
        cycles=snap.cycles,
        skipped_ticks=snap.skipped_ticks,
        references=snap.references,
        passed_at=snap.passed_at,
        last_update_age_s=_age(board.updated_at),
    )


@router.get("/healthz", response_model=HealthResponse)
def healthz(request: Request):
    board = request.app.state.status_board
    snap = board.snapshot()
    warnings = _compute_warnings(_age(board.updated_at), snap.state.value, len(snap.references))
    return HealthResponse(
        ok=not warnings,
        state=snap.state.value,
        uptime_seconds=board.uptime_seconds,
        warnings=warnings,
    )
