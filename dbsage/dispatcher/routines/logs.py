"""
Log file analysis. Reads the file at ``request.log_path``; no database I/O.

XML logs are scanned for error/warning/info elements; text logs get a
dialect-specific scan plus a generic line summary.
"""

import re
import xml.etree.ElementTree as ET
from collections import Counter
from datetime import datetime
from pathlib import Path

from dbsage.dispatcher.registry import routine
from dbsage.dispatcher.report import RoutineContext, format_size, truncate
from dbsage.schemas.analysis import AnalysisKind
from dbsage.schemas.connection import DatabaseKind

LISTED_MESSAGES = 10

XML_LEVELS = ("error", "warning", "info")


def _xml_level(tag: str) -> str | None:
    # Strip any namespace: {urn:x}Error -> error
    name = tag.rsplit("}", 1)[-1].lower()
    return name if name in XML_LEVELS else None


def analyze_xml_log(ctx: RoutineContext, path: Path) -> None:
    report = ctx.report
    counts: Counter = Counter()
    messages: dict[str, list[str]] = {"error": [], "warning": []}

    try:
        for _, element in ET.iterparse(path, events=("end",)):
            level = _xml_level(element.tag)
            if level is None:
                continue
            counts[level] += 1
            text = (element.text or "").strip()
            if level in messages and text:
                messages[level].append(text)
    except ET.ParseError as e:
        ctx.skip("XML log", "malformed XML", error=str(e))
        return

    report.heading("Statistics")
    report.detail("Errors", counts["error"])
    report.detail("Warnings", counts["warning"])
    report.detail("Info", counts["info"])
    report.text()

    for level, title in (("error", "Errors Found"), ("warning", "Warnings Found")):
        found = messages[level]
        if not found:
            continue
        report.heading(title)
        for i, message in enumerate(found[:LISTED_MESSAGES], start=1):
            report.text(f"{i}. {truncate(message, 200)}")
        if len(found) > LISTED_MESSAGES:
            report.text()
            report.text(f"... and {len(found) - LISTED_MESSAGES} more")
        report.text()


def _oracle_log(ctx: RoutineContext, text: str) -> None:
    report = ctx.report
    codes = Counter(code.upper() for code in re.findall(r"ORA-\d+", text, re.IGNORECASE))
    report.heading("Oracle Errors")
    report.detail("ORA errors found", sum(codes.values()))
    report.text()
    if codes:
        report.table(["Error", "Occurrences"], codes.most_common())

    lowered = text.lower()
    if "tablespace" in lowered:
        report.warning("Tablespace problems mentioned in the log")
    if "connection" in lowered or "connect" in lowered:
        report.warning("Connection problems mentioned in the log")


def _sqlserver_log(ctx: RoutineContext, text: str) -> None:
    report = ctx.report
    errors = re.findall(r"error\s+\d+", text, re.IGNORECASE)
    report.heading("SQL Server Errors")
    report.detail("Errors found", len(errors))
    report.text()
    lowered = text.lower()
    if "deadlock" in lowered:
        report.warning("Deadlocks detected")
    if "blocked" in lowered:
        report.warning("Blocking detected")


def _mysql_log(ctx: RoutineContext, text: str) -> None:
    report = ctx.report
    errors = re.findall(r"\[ERROR\]", text, re.IGNORECASE)
    report.heading("MySQL Errors")
    report.detail("Errors found", len(errors))
    report.text()
    if "slow query" in text.lower():
        report.warning("Slow queries detected")


def _postgres_log(ctx: RoutineContext, text: str) -> None:
    report = ctx.report
    errors = re.findall(r"ERROR:\s+", text, re.IGNORECASE)
    report.heading("PostgreSQL Errors")
    report.detail("Errors found", len(errors))
    report.text()
    if "connection" in text.lower():
        report.warning("Connection problems mentioned in the log")


def _mongodb_log(ctx: RoutineContext, text: str) -> None:
    # Structured logs carry the severity as "s":"E"
    errors = re.findall(r'"E"', text)
    ctx.report.heading("MongoDB Errors")
    ctx.report.detail("Errors found", len(errors))
    ctx.report.text()


TEXT_ANALYZERS = {
    DatabaseKind.ORACLE: _oracle_log,
    DatabaseKind.SQLSERVER: _sqlserver_log,
    DatabaseKind.MYSQL: _mysql_log,
    DatabaseKind.POSTGRESQL: _postgres_log,
    DatabaseKind.MONGODB: _mongodb_log,
}


def analyze_text_log(ctx: RoutineContext, text: str) -> None:
    analyzer = TEXT_ANALYZERS.get(ctx.request.database_kind)
    if analyzer is not None:
        analyzer(ctx, text)

    lowered = text.lower()
    report = ctx.report
    report.heading("Summary")
    report.detail("Lines", len(text.splitlines()))
    report.detail("Errors", lowered.count("error"))
    report.detail("Warnings", lowered.count("warning"))
    report.detail("Info", lowered.count("info"))


@routine(DatabaseKind.POSTGRESQL, AnalysisKind.LOGS)
@routine(DatabaseKind.MYSQL, AnalysisKind.LOGS)
@routine(DatabaseKind.SQLSERVER, AnalysisKind.LOGS)
@routine(DatabaseKind.ORACLE, AnalysisKind.LOGS)
@routine(DatabaseKind.MONGODB, AnalysisKind.LOGS)
def log_analysis(ctx: RoutineContext) -> None:
    path = Path(ctx.request.log_path)
    is_xml = path.suffix.lower() == ".xml"

    report = ctx.report
    report.heading(f"{'XML' if is_xml else 'Text'} Log Analysis", 1)
    report.detail("Database Type", ctx.dialect.label)
    report.detail("File", str(path))

    try:
        stat = path.stat()
    except OSError as e:
        ctx.skip("Log file", "file not readable", error=str(e))
        return
    report.detail("Size", format_size(stat.st_size))
    report.detail("Modified", datetime.fromtimestamp(stat.st_mtime).isoformat(timespec="seconds"))
    report.text()

    if is_xml:
        analyze_xml_log(ctx, path)
        return

    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        ctx.skip("Log file", "file not readable", error=str(e))
        return
    analyze_text_log(ctx, text)
