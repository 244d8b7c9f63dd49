"""
End-of-day sweep runner
Runs the sweep once and exits: python run_sweep.py
"""

import logging
import sys

from shopflow.cache import cache
from shopflow.database import SessionLocal
from shopflow.services.status_automation import run_end_of_day_sweep

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger(__name__)

if __name__ == "__main__":
    logger.info("🚀 Running end-of-day sweep...")
    db = SessionLocal()
    try:
        summary = run_end_of_day_sweep(db, cache)
        logger.info(f"✅ Sweep finished: {summary}")
    except KeyboardInterrupt:
        logger.info("👋 Sweep stopped by user")
    except Exception as e:
        logger.error(f"❌ Sweep crashed: {e}")
        sys.exit(1)
    finally:
        db.close()
