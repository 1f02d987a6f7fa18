"""
Database module for managing migrations.
"""

from .migrate import run_migrations

__all__ = ["run_migrations"]
