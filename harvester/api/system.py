"""System API — health check, scheduler status, manual harvest trigger."""

import asyncio

from fastapi import APIRouter, HTTPException

router = APIRouter(prefix="/api/system", tags=["system"])


@router.get("/health")
def health_check():
    return {"status": "ok"}


@router.get("/scheduler")
def scheduler_status():
    """Current scheduler state with job details."""
    from harvester.engine.scheduler import get_scheduler_status
    return get_scheduler_status()


@router.post("/harvest")
async def trigger_harvest():
    """Run one harvest + rebuild pass now; refuses to overlap a running one."""
    from harvester.engine.scheduler import HarvestAlreadyRunning, run_harvest_cycle

    try:
        summary = await asyncio.to_thread(run_harvest_cycle)
    except HarvestAlreadyRunning as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"status": "ok", **summary}
