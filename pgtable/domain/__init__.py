"""
Domain package for pgtable.

Exports the `Record` base model that concrete row types subclass.
Keep this package focused on data definitions and validation concerns.
"""

from pgtable.domain.record import Record

__all__ = [
    "Record",
]
