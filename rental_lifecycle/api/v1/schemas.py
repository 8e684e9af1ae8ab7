"""Pydantic schemas for ops API responses"""

from typing import List, Optional

from pydantic import BaseModel


class RunSummarySchema(BaseModel):
    """End-of-run counts for one job"""

    job: str
    dry_run: bool
    processed: int
    sent: int
    skipped: int
    failed: int
    charged: int
    charge_failures: int
    started_at: Optional[str] = None
    finished_at: Optional[str] = None


class RunsResponse(BaseModel):
    """Response for GET /v1/runs"""

    runs: List[RunSummarySchema]
