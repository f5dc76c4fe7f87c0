import logging
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger("ShambaSmart.Scheduler")


def run_cache_sweep(cache) -> None:
    """Purge périodique des entrées expirées du cache de réponses."""
    try:
        removed = cache.clear_expired()
        if removed:
            logger.info("🧹 Cache sweep removed %d expired entries", removed)
    except Exception as e:
        logger.error("❌ Cache sweep failed: %s", e, exc_info=True)


def run_alert_cycle(alert_service) -> None:
    logger.info("📡 Starting scheduled alert check...")
    try:
        alert_service.check_and_send()
    except Exception as e:
        logger.error("❌ Alert cycle failed: %s", e, exc_info=True)


def start_scheduler(
    cache=None,
    alert_service=None,
    sweep_minutes: int = 30,
    alert_minutes: int = 60,
    run_alerts_now: bool = True,
) -> BackgroundScheduler:
    """
    Jobs :
      - cache_sweep  : toutes les `sweep_minutes`
      - alert_cycle  : toutes les `alert_minutes`, plus une fois au démarrage
    """
    scheduler = BackgroundScheduler(timezone="UTC")
    jobs = []

    if cache is not None:
        scheduler.add_job(
            run_cache_sweep, IntervalTrigger(minutes=sweep_minutes),
            args=[cache], id="cache_sweep", replace_existing=True,
        )
        jobs.append(f"Cache sweep /{sweep_minutes}min")

    if alert_service is not None:
        scheduler.add_job(
            run_alert_cycle, IntervalTrigger(minutes=alert_minutes),
            args=[alert_service], id="alert_cycle", replace_existing=True,
        )
        if run_alerts_now:
            scheduler.add_job(
                run_alert_cycle, "date",
                args=[alert_service], id="alert_cycle_startup",
            )
        jobs.append(f"Alerts /{alert_minutes}min")

    scheduler.start()
    logger.info("⏳ Scheduler started. Jobs: [%s]", ", ".join(jobs) or "none")
    return scheduler


def stop_scheduler(scheduler: Optional[BackgroundScheduler]) -> None:
    if scheduler is not None and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler shutdown.")


__all__ = ["start_scheduler", "stop_scheduler", "run_cache_sweep", "run_alert_cycle"]
