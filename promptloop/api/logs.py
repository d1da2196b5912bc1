"""FastAPI endpoints for log ingestion and updates"""
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from promptloop.api.deps import get_runtime
from promptloop.database import get_db
from promptloop.models.model_log import LogStatus, Environment
from promptloop.services.entries_service import serialize_log
from promptloop.services.exceptions import EntityNotFoundError
from promptloop.services.pipeline_runtime import PipelineRuntime

router = APIRouter(prefix="/api/logs", tags=["logs"])

class LogCreateRequest(BaseModel):
    """Request model for log ingestion"""
    model_id: int
    input: Any
    output: Any
    predicted: Optional[Any] = None
    status: LogStatus = LogStatus.SUCCESS
    environment: Environment = Environment.PRODUCTION
    agent_log_id: Optional[int] = None

    model_config = ConfigDict(protected_namespaces=())

class LogUpdateRequest(BaseModel):
    """Request model for ground truth / status updates"""
    actual: Optional[Any] = None
    status: Optional[LogStatus] = None
    predicted: Optional[Any] = None

@router.post("", status_code=201)
def create_log(
    request: LogCreateRequest,
    db: Session = Depends(get_db),
    runtime: PipelineRuntime = Depends(get_runtime)
):
    """Store a model log; evaluation and optimization run in the background"""
    service = runtime.log_service(db)
    try:
        log = service.create_log(
            request.model_id,
            input=request.input,
            output=request.output,
            predicted=request.predicted,
            status=request.status,
            environment=request.environment,
            agent_log_id=request.agent_log_id,
        )
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return serialize_log(log)

@router.get("/{log_id}")
def get_log(
    log_id: int,
    db: Session = Depends(get_db),
    runtime: PipelineRuntime = Depends(get_runtime)
):
    """Get a single log"""
    try:
        log = runtime.log_service(db).get_log(log_id)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return serialize_log(log)

@router.patch("/{log_id}")
def update_log(
    log_id: int,
    request: LogUpdateRequest,
    db: Session = Depends(get_db),
    runtime: PipelineRuntime = Depends(get_runtime)
):
    """Set ground truth or status; fields absent from the body are left untouched"""
    changes = {name: getattr(request, name) for name in request.model_fields_set}
    if not changes:
        raise HTTPException(status_code=400, detail="Nothing to update")

    service = runtime.log_service(db)
    try:
        log = service.update_log(log_id, **changes)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return serialize_log(log)
