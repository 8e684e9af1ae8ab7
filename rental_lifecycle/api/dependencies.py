"""Dependency injection for ops API endpoints"""

from rental_lifecycle.jobs import windowed


def get_latest_runs():
    """Provide the reader for all recorded run summaries"""
    return windowed.latest_runs


def get_latest_run():
    """Provide the reader for one job's latest run summary"""
    return windowed.latest_run
