from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class StatusResponse(BaseModel):
    state: str = Field(..., description="idle|detecting|passed")
    passed: bool
    decided: bool = Field(..., description="Debounced presence signal")
    present: bool = Field(..., description="Raw hit for the last executed cycle")
    output: str = Field("0", description="'1' when decided or passed")
    text: str
    best_inliers: int = 0
    best_score: float = 0.0
    cycles: int = 0
    skipped_ticks: int = 0
    references: List[str] = Field(default_factory=list)
    passed_at: Optional[float] = None
    last_update_age_s: Optional[float] = Field(None, description="Seconds since the last published snapshot")


class HealthResponse(BaseModel):
    ok: bool
    state: str
    uptime_seconds: int
    warnings: List[str] = Field(default_factory=list)
