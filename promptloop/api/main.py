"""Main FastAPI application"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from promptloop.api import logs, optimization
from promptloop.config import settings
from promptloop.database import SessionLocal, init_db
from promptloop.services.llm_client import LLMClient
from promptloop.services.pipeline_runtime import PipelineRuntime

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize logging, database and the pipeline runtime on startup"""
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    init_db()
    llm_client = LLMClient.from_settings() if settings.LLM_API_KEY else None
    if llm_client is None:
        logger.warning("LLM_API_KEY not set; LLM evaluators, insights and optimization are disabled")
    app.state.runtime = PipelineRuntime(SessionLocal, llm_client=llm_client)
    yield
    app.state.runtime.shutdown()

app = FastAPI(
    title="Prompt Optimization Loop API",
    description="Log ingestion, automatic evaluation and prompt optimization",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify allowed origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(logs.router)
app.include_router(optimization.router)

@app.get("/")
def root():
    """Return API info"""
    return {
        "message": "Prompt Optimization Loop API",
        "version": "1.0.0",
        "endpoints": {
            "logs": "/api/logs",
            "models": "/api/models/{model_id}",
            "weekly_optimization": "/api/optimization/weekly"
        }
    }

@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}
