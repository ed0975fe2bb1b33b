"""
Analysis routines. Importing this package registers every routine.
"""

from dbsage.dispatcher.routines import (  # noqa: F401
    backup,
    checklist,
    dynamic,
    logs,
    mongodb,
    mysql,
    oracle,
    postgresql,
    rac,
    sqlserver,
)
