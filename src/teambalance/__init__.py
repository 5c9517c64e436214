"""
TeamBalance board backend.

Shared task-accountability board: weighted tasks, completion evidence and
per-member contribution statistics, served over a FastAPI JSON API
(`teambalance.main:app`).
"""

__version__ = "0.1.0"
