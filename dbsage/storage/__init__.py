"""Storage operations for the records store."""

from dbsage.storage.analysis_repository import (
    create_record,
    delete_record,
    get_record,
    get_recent_records,
    list_records,
    save_record,
)

__all__ = [
    "create_record",
    "delete_record",
    "get_record",
    "get_recent_records",
    "list_records",
    "save_record",
]
