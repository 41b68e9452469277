"""PlanSense CLI."""

from plansense.cli.main import app

__all__ = ["app"]
