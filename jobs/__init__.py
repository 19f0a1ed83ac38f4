"""
Background jobs.

Modules:
    warmup: forecast warmup batch job and single warmup execution
    alerts: due-alert selection and trend alert checks
    evaluation: forecast evaluation and trust statistics
    scheduler: APScheduler wiring for the three jobs

Every job can be run with an explicit session (tests, routes) or opens its
own with core.database.get_db_session (scheduler, scripts).
"""

__all__ = [
    "warmup_forecasts",
    "execute_warmup",
    "run_alert_checks",
    "evaluate_forecasts",
    "JobScheduler",
]
