# ================================
# BACKGROUND SCHEDULER (core/scheduler.py)
# ================================

import asyncio
import logging
from datetime import datetime, timezone, timedelta
from typing import Dict, Any, Optional, Callable
import traceback

from app.core.database import SessionLocal
from app.config import settings

logger = logging.getLogger(__name__)

DAY_SECONDS = 86400

class BackgroundScheduler:
    """Simple background task scheduler for periodic tasks"""

    def __init__(self):
        self.tasks: Dict[str, Dict[str, Any]] = {}
        self.running = False
        self._task_handles: Dict[str, asyncio.Task] = {}

    def add_task(
        self,
        name: str,
        func: Callable,
        interval_seconds: int,
        initial_delay: int = 0,
        enabled: bool = True
    ):
        """Add a periodic task to the scheduler"""
        self.tasks[name] = {
            "func": func,
            "interval": interval_seconds,
            "initial_delay": initial_delay,
            "enabled": enabled,
            "last_run": None,
            "next_run": None,
            "run_count": 0,
            "error_count": 0,
            "last_error": None
        }
        logger.info(f"Scheduled task '{name}' with interval {interval_seconds}s (enabled: {enabled})")

    async def start(self):
        if self.running:
            logger.warning("Scheduler already running")
            return

        self.running = True
        logger.info("Starting background scheduler")

        for task_name, task_config in self.tasks.items():
            if task_config["enabled"]:
                self._task_handles[task_name] = asyncio.create_task(
                    self._run_task_loop(task_name)
                )

    async def stop(self):
        self.running = False
        logger.info("Stopping background scheduler")

        for task_name, task_handle in self._task_handles.items():
            task_handle.cancel()
            try:
                await task_handle
            except asyncio.CancelledError:
                pass

        self._task_handles.clear()
        logger.info("Background scheduler stopped")

    async def run_task(self, task_name: str):
        """Run a task once and record its outcome; errors are kept in the task status"""
        task_config = self.tasks[task_name]
        start_time = datetime.now(timezone.utc)
        logger.info(f"Running scheduled task '{task_name}'")

        try:
            await task_config["func"]()

            task_config["last_run"] = start_time
            task_config["run_count"] += 1

            duration = (datetime.now(timezone.utc) - start_time).total_seconds()
            logger.info(f"Task '{task_name}' completed in {duration:.2f}s")

        except Exception as e:
            task_config["error_count"] += 1
            task_config["last_error"] = {
                "time": datetime.now(timezone.utc),
                "error": str(e),
                "traceback": traceback.format_exc()
            }
            logger.error(f"Error in scheduled task '{task_name}': {e}")
            logger.debug(traceback.format_exc())

    async def _run_task_loop(self, task_name: str):
        task_config = self.tasks[task_name]

        if task_config["initial_delay"] > 0:
            logger.info(f"Task '{task_name}' waiting {task_config['initial_delay']}s before first run")
            await asyncio.sleep(task_config["initial_delay"])

        while self.running and task_config["enabled"]:
            task_config["next_run"] = datetime.now(timezone.utc) + timedelta(
                seconds=task_config["interval"]
            )
            await self.run_task(task_name)
            await asyncio.sleep(task_config["interval"])

    def get_task_status(self, task_name: Optional[str] = None) -> Dict[str, Any]:
        if task_name:
            if task_name not in self.tasks:
                return {"error": f"Task '{task_name}' not found"}

            task = self.tasks[task_name]
            return {
                "name": task_name,
                "enabled": task["enabled"],
                "interval": task["interval"],
                "last_run": task["last_run"].isoformat() if task["last_run"] else None,
                "next_run": task["next_run"].isoformat() if task["next_run"] else None,
                "run_count": task["run_count"],
                "error_count": task["error_count"],
                "last_error": task["last_error"]["error"] if task["last_error"] else None
            }

        return {
            name: self.get_task_status(name)
            for name in self.tasks
        }

# Global scheduler instance
scheduler = BackgroundScheduler()

# ================================
# SCHEDULED TASKS
# ================================

def _generate_recurring_invoices_sync():
    from app.services.recurring_service import RecurringService

    db = SessionLocal()
    try:
        generated = RecurringService.generate_due_invoices(db)
        db.commit()
        if generated:
            logger.info(f"Recurring generation created {len(generated)} invoice(s)")
    except Exception as e:
        logger.error(f"Error in recurring invoice generation: {e}")
        db.rollback()
        raise
    finally:
        db.close()

async def generate_recurring_invoices():
    """Creates invoices for every recurring template that is due; database work runs in a worker thread"""
    await asyncio.to_thread(_generate_recurring_invoices_sync)

def _update_overdue_invoices_sync():
    from app.services.invoice_service import InvoiceService

    db = SessionLocal()
    try:
        InvoiceService.update_overdue_invoices(db)
        db.commit()
    except Exception as e:
        logger.error(f"Error in overdue sweep: {e}")
        db.rollback()
        raise
    finally:
        db.close()

async def update_overdue_invoices():
    """Daily overdue sweep"""
    await asyncio.to_thread(_update_overdue_invoices_sync)

async def run_database_backup():
    """pg_dump plus retention cleanup; the child process runs in a worker thread"""
    from app.services.backup_service import BackupService

    await asyncio.to_thread(BackupService.run_scheduled_backup)

async def cleanup_old_exports():
    from app.services.data_export_service import DataExportService

    await asyncio.to_thread(DataExportService.cleanup_old_exports)

# ================================
# SCHEDULER INITIALIZATION
# ================================

def initialize_scheduler():
    """Initialize the scheduler with default tasks"""

    # Recurring invoices - daily
    scheduler.add_task(
        name="recurring_invoices",
        func=generate_recurring_invoices,
        interval_seconds=DAY_SECONDS,
        initial_delay=60,
        enabled=settings.ENABLE_RECURRING_GENERATION
    )

    # Overdue sweep - daily
    scheduler.add_task(
        name="overdue_sweep",
        func=update_overdue_invoices,
        interval_seconds=DAY_SECONDS,
        initial_delay=120,
        enabled=True
    )

    # Database backup - every BACKUP_INTERVAL_HOURS
    scheduler.add_task(
        name="database_backup",
        func=run_database_backup,
        interval_seconds=settings.BACKUP_INTERVAL_HOURS * 3600,
        initial_delay=600,
        enabled=settings.BACKUP_ENABLED
    )

    # Export cleanup - daily
    scheduler.add_task(
        name="export_cleanup",
        func=cleanup_old_exports,
        interval_seconds=DAY_SECONDS,
        initial_delay=900,
        enabled=True
    )

    logger.info("Scheduler initialized with default tasks")
