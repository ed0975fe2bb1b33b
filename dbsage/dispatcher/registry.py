"""
Closed (database kind, analysis kind) -> routine registry and the dispatch
entry point.

Routines register themselves with @routine; dispatch() resolves the pair and
validates the request parameters before touching the connection.
"""

from typing import Callable

from dbsage.config import Settings, settings as default_settings
from dbsage.connections.base import DatabaseConnection
from dbsage.dialects import is_select
from dbsage.errors import ConfigurationError
from dbsage.dispatcher.report import AnalysisReport, RoutineContext
from dbsage.llm.backend import LLMBackend
from dbsage.logging_config import get_logger
from dbsage.schemas.analysis import AnalysisKind, AnalysisRequest
from dbsage.schemas.connection import DatabaseKind

logger = get_logger(__name__)

Routine = Callable[[RoutineContext], None]

ROUTINES: dict[tuple[DatabaseKind, AnalysisKind], Routine] = {}

# Kinds that exist but have no routine anywhere
UNSUPPORTED_REASONS: dict[AnalysisKind, str] = {
    AnalysisKind.CHAT: "chat needs an interactive session; use open_session()",
    AnalysisKind.PREDICTIVE: "predictive analysis is not available",
    AnalysisKind.ERROR_KNOWLEDGE: "error knowledge base analysis is not available",
}


def routine(database_kind: DatabaseKind, *analysis_kinds: AnalysisKind) -> Callable[[Routine], Routine]:
    """
    Register a routine for one database kind and one or more analysis kinds.
    
    Example:
        @routine(DatabaseKind.POSTGRESQL, AnalysisKind.LOCKS, AnalysisKind.POSTGRES_LOCKS)
        def postgres_locks(ctx: RoutineContext) -> None:
            ...
    """
    def register(func: Routine) -> Routine:
        for analysis_kind in analysis_kinds:
            key = (database_kind, analysis_kind)
            if key in ROUTINES:
                raise ConfigurationError(
                    f"Duplicate routine for {database_kind.value}/{analysis_kind.value}"
                )
            ROUTINES[key] = func
        return func

    return register


def is_supported(database_kind: DatabaseKind, analysis_kind: AnalysisKind) -> bool:
    return (database_kind, analysis_kind) in ROUTINES


def supported_analyses(database_kind: DatabaseKind) -> list[AnalysisKind]:
    """Analysis kinds available for a database kind, in declaration order."""
    return [kind for kind in AnalysisKind if (database_kind, kind) in ROUTINES]


def resolve_routine(request: AnalysisRequest) -> Routine:
    """
    Find the routine for a request.
    
    Raises:
        ConfigurationError: Unsupported pairing
    """
    if request.analysis_kind in UNSUPPORTED_REASONS:
        raise ConfigurationError(UNSUPPORTED_REASONS[request.analysis_kind])

    if request.connection.kind != request.database_kind:
        raise ConfigurationError(
            f"Connection is for {request.connection.kind.value}, "
            f"request targets {request.database_kind.value}"
        )

    func = ROUTINES.get((request.database_kind, request.analysis_kind))
    if func is None:
        raise ConfigurationError(
            f"Analysis '{request.analysis_kind.value}' is not supported for "
            f"{request.database_kind.value}"
        )
    return func


def validate_parameters(request: AnalysisRequest, backend: LLMBackend | None) -> None:
    """
    Check the per-kind parameters a routine needs.
    
    Raises:
        ConfigurationError: Missing or invalid parameter
    """
    kind = request.analysis_kind
    title = (request.title or "").strip()

    if kind == AnalysisKind.LOGS and not request.log_path:
        raise ConfigurationError("Log analysis requires a log file path")

    if kind == AnalysisKind.PDB and not title:
        raise ConfigurationError("PDB analysis requires the PDB name as title")

    if kind == AnalysisKind.DATABASE and not (title or request.connection.database):
        raise ConfigurationError("Database analysis requires a database name")

    if kind == AnalysisKind.EXECUTION_PLAN:
        if not title:
            raise ConfigurationError("Execution plan analysis requires the SELECT statement as title")
        if not is_select(title):
            raise ConfigurationError("Execution plans are only produced for SELECT statements")

    if kind == AnalysisKind.DYNAMIC and backend is None:
        raise ConfigurationError("Dynamic analysis requires a language-model backend")


def dispatch(
    request: AnalysisRequest,
    connection: DatabaseConnection,
    backend: LLMBackend | None = None,
    settings: Settings | None = None,
) -> AnalysisReport:
    """
    Run the analysis routine selected by ``request``.
    
    Args:
        request: Database kind, analysis kind and parameters
        connection: Already-connected target database
        backend: Optional language model (required for 'dynamic', used by 'backup')
        settings: Injected settings (defaults to the global instance)
        
    Returns:
        AnalysisReport with the markdown text and any skipped sections
        
    Raises:
        ConfigurationError: Unsupported pairing or missing parameter, before any I/O
        DatabaseConnectionError: The connection failed mid-analysis
    """
    func = resolve_routine(request)
    validate_parameters(request, backend)

    log = logger.bind(
        database_kind=request.database_kind.value,
        analysis_kind=request.analysis_kind.value,
    )
    log.info("dispatch_started", routine=func.__name__)

    ctx = RoutineContext(
        request=request,
        connection=connection,
        settings=settings or default_settings,
        backend=backend,
    )
    func(ctx)
    report = ctx.result()

    log.info("dispatch_completed", skipped=len(report.skipped), chars=len(report.text))
    return report
