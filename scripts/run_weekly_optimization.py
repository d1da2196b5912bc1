"""
Run one optimization cycle (insights, suggestions, A/B challenger update) for
every active original model. Meant to be scheduled weekly.

Usage:
    python scripts/run_weekly_optimization.py

For scheduling (Mondays at 03:00):
    0 3 * * 1 python scripts/run_weekly_optimization.py
"""
import logging
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from promptloop.config import settings
from promptloop.database import SessionLocal, init_db
from promptloop.services.llm_client import LLMClient
from promptloop.services.notifier import LoggingNotifier
from promptloop.services.optimization_service import OptimizationService

logger = logging.getLogger("run_weekly_optimization")

def main() -> int:
    """Run the weekly optimization batch; returns the number of failed models"""
    logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    if not settings.LLM_API_KEY:
        logger.error("LLM_API_KEY is not set, nothing to optimize")
        return 1

    init_db()
    db = SessionLocal()
    try:
        service = OptimizationService(db, LLMClient.from_settings(), notifier=LoggingNotifier())
        results = service.run_weekly_optimization()
    finally:
        db.close()

    failed = [r for r in results if r["status"] == "error"]
    for result in results:
        logger.info(f"model={result['modelId']} status={result['status']}")
    return len(failed)

if __name__ == "__main__":
    sys.exit(1 if main() else 0)
