"""
Health check HTTP server for liveness and readiness probes.

Reports whether the clubfin document database is reachable and, when a
ClubFinance instance is attached, how many tracked items are overdue or
coming due.
"""

import sqlite3
from pathlib import Path
from typing import Any

from flask import Flask, jsonify

from clubfin import __version__
from clubfin.kernel.logging import get_logger

logger = get_logger(__name__)

app = Flask(__name__)

SERVICE_NAME = "clubfin"

# Set by initialize_health_server()
_db_path: Path | None = None
_club: Any = None  # ClubFinance instance for alert summaries


def initialize_health_server(db_path: str | Path, club: Any = None) -> None:
    """
    Point the health server at a database (and optionally a ClubFinance).

    Args:
        db_path: Path to the SQLite document database
        club: Optional ClubFinance used for the alert summary
    """
    global _db_path, _club
    _db_path = Path(db_path)
    _club = club
    logger.info("Health server initialized", db_path=str(_db_path))


def _not_ready(reason: str, **details: Any) -> tuple[Any, int]:
    return jsonify({"status": "not_ready", "reason": reason, **details}), 503


@app.route("/health/live", methods=["GET"])
def liveness() -> tuple[Any, int]:
    """Liveness probe - the process is up."""
    return jsonify({"status": "alive", "service": SERVICE_NAME}), 200


@app.route("/health/ready", methods=["GET"])
def readiness() -> tuple[Any, int]:
    """
    Readiness probe - the document database can be queried.

    Returns:
        200 with the document count, or 503 with a reason
    """
    if _db_path is None:
        logger.error("Readiness check failed: DB path not initialized")
        return _not_ready("database_path_not_initialized")

    if not _db_path.exists():
        logger.error("Readiness check failed: DB file does not exist", db_path=str(_db_path))
        return _not_ready("database_file_not_found", db_path=str(_db_path))

    try:
        conn = sqlite3.connect(str(_db_path), timeout=1.0)
        try:
            document_count = conn.execute("SELECT COUNT(*) FROM documents").fetchone()[0]
        finally:
            conn.close()
    except sqlite3.Error as e:
        logger.error("Readiness check failed: DB error", error=str(e))
        return _not_ready("database_operational_error", error=str(e))

    logger.debug("Readiness check passed", document_count=document_count)
    return (
        jsonify({"status": "ready", "database": "accessible", "document_count": document_count}),
        200,
    )


@app.route("/health", methods=["GET"])
def detailed_health() -> tuple[Any, int]:
    """
    Detailed health - per-collection document counts and alert summary.

    Returns:
        200 when healthy, 503 when degraded
    """
    health_data: dict[str, Any] = {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": __version__,
    }

    if _db_path and _db_path.exists():
        try:
            conn = sqlite3.connect(str(_db_path), timeout=1.0)
            try:
                rows = conn.execute(
                    "SELECT collection, COUNT(*) FROM documents GROUP BY collection"
                ).fetchall()
                page_count = conn.execute("PRAGMA page_count").fetchone()[0]
                page_size = conn.execute("PRAGMA page_size").fetchone()[0]
            finally:
                conn.close()

            health_data["database"] = {
                "status": "healthy",
                "path": str(_db_path),
                "collections": {collection: count for collection, count in rows},
                "size_mb": round((page_count * page_size) / (1024 * 1024), 2),
            }
        except sqlite3.Error as e:
            logger.error("Database health check failed", error=str(e))
            health_data["database"] = {"status": "unhealthy", "error": str(e)}
            health_data["status"] = "degraded"
    else:
        health_data["database"] = {"status": "not_initialized"}
        health_data["status"] = "degraded"

    if _club is not None:
        try:
            summary: dict[str, dict[str, int]] = {}
            for kind, alerts in (
                ("maintenance", _club.maintenance_alerts()),
                ("capex", _club.capex_alerts()),
            ):
                counts: dict[str, int] = {}
                for entry in alerts:
                    status = entry.alert.status.value
                    counts[status] = counts.get(status, 0) + 1
                summary[kind] = counts
            health_data["alerts"] = summary
        except Exception as e:
            logger.warning("Could not compute alert summary", error=str(e))
            health_data["alerts"] = {"status": "unavailable", "error": str(e)}

    status_code = 200 if health_data["status"] == "healthy" else 503
    return jsonify(health_data), status_code


def run_health_server(port: int = 8080, debug: bool = False) -> None:
    """
    Run the health check server.

    Args:
        port: Port to listen on (default: 8080)
        debug: Enable Flask debug mode (default: False)
    """
    logger.info("Starting health check server", port=port)
    app.run(host="0.0.0.0", port=port, debug=debug)
