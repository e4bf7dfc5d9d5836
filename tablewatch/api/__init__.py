"""
High-level API for watching and playing at a table.
"""

from tablewatch.api.session import TableSession

__all__ = ["TableSession"]
