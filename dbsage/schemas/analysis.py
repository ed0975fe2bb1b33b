"""
Schemas describing an analysis request and its lifecycle.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from dbsage.schemas.connection import ConnectionDescriptor, DatabaseKind


class AnalysisKind(str, Enum):
    """Named diagnostic procedures."""

    # General
    DIAGNOSTIC = "diagnostic"
    TUNING = "tuning"
    QUERY = "query"
    TABLESPACE = "tablespace"
    DISK = "disk"
    TABLES = "tables"
    INDEXES = "indexes"
    LOGS = "logs"
    EXECUTION_PLAN = "execution_plan"

    # Locks / sessions
    LOCKS = "locks"
    POSTGRES_LOCKS = "postgres_locks"
    MYSQL_LOCKS = "mysql_locks"
    ACTIVE_SESSIONS = "active_sessions"
    RUNNING_QUERIES = "running_queries"

    # Replication / storage health
    REPLICATION = "replication"
    POSTGRES_REPLICATION = "postgres_replication"
    MYSQL_REPLICATION = "mysql_replication"
    FRAGMENTATION = "fragmentation"
    POSTGRES_FRAGMENTATION = "postgres_fragmentation"
    MYSQL_FRAGMENTATION = "mysql_fragmentation"

    # MongoDB
    SHARDING = "sharding"
    LATENCY = "latency"
    PERFORMANCE = "performance"

    # SQL Server
    INSTANCE = "instance"
    DATABASES = "databases"
    DATABASE = "database"

    # Oracle
    AWR = "awr"
    ASH = "ash"
    PDBS = "pdbs"
    PDB = "pdb"
    RAC_HEALTH = "rac_health"
    RAC_ERRORS = "rac_errors"
    RAC_LISTENER = "rac_listener"
    RAC_LATENCY = "rac_latency"

    # Cross-engine
    CHECKLIST = "checklist"
    BACKUP = "backup"
    DYNAMIC = "dynamic"

    # Recognized but without a routine
    PREDICTIVE = "predictive"
    ERROR_KNOWLEDGE = "error_knowledge"
    CHAT = "chat"


class OutputKind(str, Enum):
    """Final rendering requested by the caller (applied outside dbsage)."""

    JSON = "json"
    MARKDOWN = "markdown"
    TEXT = "text"
    HTML = "html"


class AnalysisStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class AnalysisRequest(BaseModel):
    """
    Selector for one dispatcher run.
    Immutable once built.
    """

    model_config = ConfigDict(frozen=True)

    database_kind: DatabaseKind
    analysis_kind: AnalysisKind
    output_kind: OutputKind = Field(default=OutputKind.MARKDOWN)
    connection: ConnectionDescriptor
    log_path: str | None = Field(
        default=None,
        description="Log file to analyse (required for 'logs')",
    )
    title: str | None = Field(
        default=None,
        description=(
            "Free-form parameter: the request text for 'dynamic', the PDB name "
            "for 'pdb', the database for 'database', the statement for "
            "'execution_plan', the checklist type for 'checklist'"
        ),
        examples=["show the ten largest tables", "ORCLPDB1", "weekly"],
    )

    def snapshot(self) -> dict:
        """JSON-safe copy for persistence, credentials redacted."""
        data = self.model_dump(mode="json", exclude={"connection"})
        data["connection"] = self.connection.redacted()
        return data
