"""Background jobs."""

from .monthly_renewal import register_scheduler, run_renewal_once

__all__ = ["register_scheduler", "run_renewal_once"]
