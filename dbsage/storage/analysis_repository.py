"""
Analysis record storage operations.

Every function takes the Session first. Writes commit immediately so a
record keeps its last status even if the caller later rolls back.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from dbsage.logging_config import get_logger
from dbsage.models import AnalysisRecord
from dbsage.schemas.analysis import AnalysisKind, AnalysisRequest, AnalysisStatus
from dbsage.schemas.connection import DatabaseKind

logger = get_logger(__name__)

DEFAULT_LIST_LIMIT = 50


def create_record(db: Session, request: AnalysisRequest) -> AnalysisRecord:
    """
    Persist a new pending record for a request.
    
    Args:
        db: Database session
        request: Request being run (the snapshot redacts the password)
        
    Returns:
        Committed AnalysisRecord with its id assigned
    """
    record = AnalysisRecord(
        database_kind=request.database_kind.value,
        analysis_kind=request.analysis_kind.value,
        output_kind=request.output_kind.value,
        request_snapshot=request.snapshot(),
        status=AnalysisStatus.PENDING.value,
    )
    db.add(record)
    db.commit()
    db.refresh(record)

    logger.info(
        "analysis_record_created",
        record_id=record.id,
        database_kind=record.database_kind,
        analysis_kind=record.analysis_kind,
    )
    return record


def get_record(db: Session, record_id: int) -> AnalysisRecord | None:
    """Get a record by ID."""
    return db.get(AnalysisRecord, record_id)


def list_records(
    db: Session,
    limit: int = DEFAULT_LIST_LIMIT,
    database_kind: DatabaseKind | None = None,
    analysis_kind: AnalysisKind | None = None,
    status: AnalysisStatus | None = None,
) -> list[AnalysisRecord]:
    """
    Records matching the filters, newest first.
    
    Args:
        db: Database session
        limit: Maximum records to return (<= 0 means no limit)
        database_kind: Only this engine
        analysis_kind: Only this analysis
        status: Only this status
    """
    stmt = select(AnalysisRecord)

    if database_kind is not None:
        stmt = stmt.where(AnalysisRecord.database_kind == database_kind.value)
    if analysis_kind is not None:
        stmt = stmt.where(AnalysisRecord.analysis_kind == analysis_kind.value)
    if status is not None:
        stmt = stmt.where(AnalysisRecord.status == status.value)

    stmt = stmt.order_by(AnalysisRecord.created_at.desc(), AnalysisRecord.id.desc())
    if limit > 0:
        stmt = stmt.limit(limit)

    return list(db.scalars(stmt))


def get_recent_records(db: Session, limit: int = 10) -> list[AnalysisRecord]:
    return list_records(db, limit=limit)


def save_record(db: Session, record: AnalysisRecord) -> AnalysisRecord:
    """Commit in-place changes made through the record's mark_* methods."""
    db.add(record)
    db.commit()
    db.refresh(record)
    logger.debug("analysis_record_saved", record_id=record.id, status=record.status)
    return record


def delete_record(db: Session, record_id: int) -> bool:
    """
    Delete a record.
    
    Returns:
        True if a record was deleted
    """
    record = get_record(db, record_id)
    if record is None:
        return False
    db.delete(record)
    db.commit()
    logger.info("analysis_record_deleted", record_id=record_id)
    return True
