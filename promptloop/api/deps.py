"""Shared FastAPI dependencies"""
from fastapi import Request

from promptloop.services.pipeline_runtime import PipelineRuntime

def get_runtime(request: Request) -> PipelineRuntime:
    """Pipeline runtime created in the application lifespan"""
    return request.app.state.runtime
