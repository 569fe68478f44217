"""
Workflows router.

This module provides endpoints for:
- Workflow CRUD (a source channel URL cross-posted to target platforms)
- Pausing/resuming a workflow and running it on demand
- Per-user workflow stats and per-workflow target metrics
"""

import asyncio

from fastapi import APIRouter, Depends, HTTPException, Query

from app.dependencies import get_current_user_id
from app.models.schemas import WorkflowCreateRequest, WorkflowUpdateRequest
from app.services import workflow_service
from app.services.ytdlp_service import SourceError

router = APIRouter(prefix="/workflows", tags=["Workflows"])


@router.get("")
async def list_workflows(user_id: str = Depends(get_current_user_id)):
    return {"workflows": workflow_service.list_workflows(user_id)}


@router.post("", status_code=201)
async def create_workflow(request: WorkflowCreateRequest, user_id: str = Depends(get_current_user_id)):
    """
    Create a workflow.

    The source platform may not be one of the targets, and the source and
    every target must be connected to the channel (422 otherwise).
    """
    return workflow_service.create_workflow(user_id, request.model_dump())


@router.get("/stats")
async def workflow_stats(user_id: str = Depends(get_current_user_id)):
    return workflow_service.get_workflow_stats(user_id)


@router.get("/{workflow_id}")
async def get_workflow(workflow_id: str, user_id: str = Depends(get_current_user_id)):
    return workflow_service.get_workflow(user_id, workflow_id)


@router.patch("/{workflow_id}")
async def update_workflow(workflow_id: str, request: WorkflowUpdateRequest, user_id: str = Depends(get_current_user_id)):
    return workflow_service.update_workflow(user_id, workflow_id, request.model_dump(exclude_unset=True))


@router.delete("/{workflow_id}")
async def delete_workflow(workflow_id: str, user_id: str = Depends(get_current_user_id)):
    workflow_service.delete_workflow(user_id, workflow_id)
    return {"deleted": True, "workflow_id": workflow_id}


@router.post("/{workflow_id}/toggle")
async def toggle_workflow(workflow_id: str, user_id: str = Depends(get_current_user_id)):
    workflow = workflow_service.get_workflow(user_id, workflow_id)
    is_active = workflow_service.toggle_workflow(workflow)
    return {"workflow_id": workflow["id"], "is_active": is_active}


@router.post("/{workflow_id}/run")
async def run_workflow(
    workflow_id: str,
    dry_run: bool = Query(False, description="Only report what would be created"),
    user_id: str = Depends(get_current_user_id)
):
    """
    Run a workflow now, active or not.

    Downloads can take minutes per video; the run happens in a worker thread.
    """
    workflow = workflow_service.get_workflow(user_id, workflow_id)
    try:
        return await asyncio.to_thread(workflow_service.process_workflow, workflow, dry_run)
    except SourceError as e:
        raise HTTPException(status_code=502, detail=str(e))


@router.get("/{workflow_id}/metrics")
async def workflow_metrics(workflow_id: str, user_id: str = Depends(get_current_user_id)):
    workflow = workflow_service.get_workflow(user_id, workflow_id)
    return {"workflow_id": workflow["id"], **workflow_service.get_workflow_metrics(workflow)}
