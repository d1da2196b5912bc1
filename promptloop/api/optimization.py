"""FastAPI endpoints for entries, prompt versions and optimization"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from promptloop.api.deps import get_runtime
from promptloop.database import get_db
from promptloop.services.entries_service import EntriesService
from promptloop.services.exceptions import EntityNotFoundError
from promptloop.services.llm_client import LLMError
from promptloop.services.optimization_service import OptimizationService
from promptloop.services.pipeline_runtime import PipelineRuntime
from promptloop.services.prompt_version_service import PromptVersionService

router = APIRouter(prefix="/api", tags=["optimization"])

class OptimizedPromptRequest(BaseModel):
    """Request model for deploying a prompt"""
    prompt: str

def _version_payload(version) -> dict:
    return {
        "id": version.id,
        "modelId": version.model_id,
        "version": version.version,
        "prompt": version.prompt,
        "activeVersion": version.active_version,
        "createdAt": version.created_at.isoformat() if version.created_at else None,
    }

def _optimization_service(db: Session, runtime: PipelineRuntime) -> OptimizationService:
    return OptimizationService(db, runtime.llm_client, runtime.sampling, runtime.notifier)

@router.get("/models/{model_id}/entries")
def get_entries(
    model_id: int,
    type: str = Query("all"),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100, alias="pageSize"),
    environment: str = Query("production"),
    db: Session = Depends(get_db),
    runtime: PipelineRuntime = Depends(get_runtime)
):
    """Paginated log entries of a model, served through the entries cache"""
    service = EntriesService(db, runtime.cache)
    try:
        return service.list_entries(model_id, type, page, page_size, environment)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@router.post("/models/{model_id}/suggestions")
def apply_suggestions(
    model_id: int,
    db: Session = Depends(get_db),
    runtime: PipelineRuntime = Depends(get_runtime)
):
    """Synthesize a candidate prompt from the model's insights (null when there is none)"""
    try:
        prompt: Optional[str] = _optimization_service(db, runtime).apply_suggestions(model_id)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except LLMError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"modelId": model_id, "prompt": prompt}

@router.post("/models/{model_id}/optimized-prompt")
def use_optimized_prompt(
    model_id: int,
    request: OptimizedPromptRequest,
    db: Session = Depends(get_db)
):
    """Deploy a prompt as the model's new active version"""
    try:
        version = PromptVersionService(db).use_optimized_prompt(model_id, request.prompt)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _version_payload(version)

@router.get("/models/{model_id}/versions")
def list_versions(model_id: int, db: Session = Depends(get_db)):
    """All prompt versions of a model, newest first"""
    return [_version_payload(v) for v in PromptVersionService(db).list_versions(model_id)]

@router.post("/models/{model_id}/versions/{version}/release")
def release_version(model_id: int, version: str, db: Session = Depends(get_db)):
    """Make an existing version the active one"""
    try:
        released = PromptVersionService(db).release_version(model_id, version)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _version_payload(released)

@router.post("/optimization/weekly")
def run_weekly_optimization(
    db: Session = Depends(get_db),
    runtime: PipelineRuntime = Depends(get_runtime)
):
    """Run one optimization cycle for every active original model"""
    results = _optimization_service(db, runtime).run_weekly_optimization()
    return {"processed": len(results), "results": results}
