"""
API routers package.
"""
from ci_health.routers import reports, tests, bugs

__all__ = ["reports", "tests", "bugs"]
