"""Analysis record model - one dispatcher run and its outcome."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from dbsage.database import Base
from dbsage.errors import InvalidStatusTransitionError
from dbsage.schemas.analysis import AnalysisStatus

# Allowed next statuses; anything else is a regression
TRANSITIONS: dict[str, set[str]] = {
    AnalysisStatus.PENDING.value: {AnalysisStatus.PROCESSING.value},
    AnalysisStatus.PROCESSING.value: {AnalysisStatus.COMPLETED.value, AnalysisStatus.ERROR.value},
    AnalysisStatus.COMPLETED.value: set(),
    AnalysisStatus.ERROR.value: set(),
}


class AnalysisRecord(Base):
    """
    Persisted analysis run.
    Status only moves pending -> processing -> completed | error.
    """

    __tablename__ = "analysis_record"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Request
    database_kind: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    analysis_kind: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    output_kind: Mapped[str] = mapped_column(String(20), nullable=False, default="markdown")
    request_snapshot: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)  # password redacted

    # Outcome
    report: Mapped[str | None] = mapped_column(Text, nullable=True)
    insight: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=AnalysisStatus.PENDING.value
    )  # pending, processing, completed, error
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    def _transition(self, target: AnalysisStatus) -> None:
        current = self.status or AnalysisStatus.PENDING.value
        if target.value not in TRANSITIONS.get(current, set()):
            raise InvalidStatusTransitionError(
                f"Cannot move analysis {self.id} from {current} to {target.value}"
            )
        self.status = target.value
        self.updated_at = datetime.utcnow()

    def mark_processing(self) -> None:
        self._transition(AnalysisStatus.PROCESSING)

    def mark_completed(self, report: str, insight: str | None = None) -> None:
        self._transition(AnalysisStatus.COMPLETED)
        self.report = report
        self.insight = insight

    def mark_failed(self, error_message: str, report: str | None = None) -> None:
        self._transition(AnalysisStatus.ERROR)
        self.error_message = error_message
        if report is not None:
            self.report = report

    def __repr__(self) -> str:
        return (
            f"<AnalysisRecord(id={self.id}, {self.database_kind}/{self.analysis_kind}, "
            f"status={self.status})>"
        )
