"""Database connection and session management"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from promptloop.config import settings

# Create database engine with appropriate settings
connect_args = {}
if settings.DATABASE_URL.startswith("sqlite"):
    # SQLite needs check_same_thread=False for the API and the pipeline workers
    connect_args = {"check_same_thread": False}

engine = create_engine(settings.DATABASE_URL, echo=False, connect_args=connect_args)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for models
Base = declarative_base()

def get_db():
    """Dependency for FastAPI to get database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def init_db(bind=None):
    """Initialize database tables"""
    # Import all models to register them with Base
    from promptloop.models import (  # noqa: F401
        company, model, model_log, model_version, ab_test, reviewers, insight,
        evaluation, metric, agent,
    )
    Base.metadata.create_all(bind=bind or engine)
