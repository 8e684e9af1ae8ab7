"""GET /v1/runs - latest run summary per job"""

from typing import Callable, List, Optional

from fastapi import APIRouter, Depends, HTTPException

from rental_lifecycle.api.dependencies import get_latest_run, get_latest_runs
from rental_lifecycle.api.v1.schemas import RunsResponse, RunSummarySchema
from rental_lifecycle.jobs.windowed import RunSummary

router = APIRouter()


@router.get("/runs", response_model=RunsResponse)
def list_runs(latest_runs: Callable[[], List[RunSummary]] = Depends(get_latest_runs)):
    """Most recent summary of every job that has run in this process"""
    return RunsResponse(runs=[RunSummarySchema(**summary.to_dict()) for summary in latest_runs()])


@router.get("/runs/{job}", response_model=RunSummarySchema)
def get_run(job: str, latest_run: Callable[[str], Optional[RunSummary]] = Depends(get_latest_run)):
    summary = latest_run(job)
    if summary is None:
        raise HTTPException(status_code=404, detail=f"No run recorded for job {job}")
    return RunSummarySchema(**summary.to_dict())
