"""
SQLAlchemy ORM models for the records store.
All models must be imported here so init_db() creates their tables.
"""

from dbsage.models.analysis import AnalysisRecord

__all__ = [
    "AnalysisRecord",
]
