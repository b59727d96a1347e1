from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import inspect, text
from sqlalchemy.engine import Connection

from app.api.deps import get_time_grid
from app.db.bootstrap import REQUIRED_COLUMNS, REQUIRED_UNIQUE_INDEXES
from app.db.session import engine

router = APIRouter()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _schema_report(connection: Connection) -> dict:
    inspector = inspect(connection)
    tables = set(inspector.get_table_names())
    report: dict = {"missing_tables": [], "missing_columns": {}, "missing_slot_indexes": []}

    for table_name, columns in REQUIRED_COLUMNS.items():
        if table_name not in tables:
            report["missing_tables"].append(table_name)
            continue
        absent = sorted(columns - {column["name"] for column in inspector.get_columns(table_name)})
        if absent:
            report["missing_columns"][table_name] = absent

    for table_name, index_names in REQUIRED_UNIQUE_INDEXES.items():
        if table_name not in tables:
            continue
        present = {index["name"] for index in inspector.get_indexes(table_name) if index.get("unique")}
        report["missing_slot_indexes"].extend(sorted(index_names - present))
    return report


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.get("/health/live")
def health_live() -> dict:
    return {"status": "ok", "timestamp": _now()}


@router.get("/health/ready")
def health_ready() -> JSONResponse:
    """Readiness: database reachable and the slot constraints in place.

    Without the unique slot indexes a losing concurrent proposal would be
    stored, so their absence reports the service as degraded.
    """
    database: dict = {"ok": True, "error": None}
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
            database.update(_schema_report(connection))
    except Exception as exc:  # pragma: no cover - environment dependent
        database.update(ok=False, error=str(exc))

    database["schema_ok"] = database["ok"] and not any(
        database.get(key) for key in ("missing_tables", "missing_columns", "missing_slot_indexes")
    )
    ready = database["schema_ok"]
    grid = get_time_grid()
    payload = {
        "status": "ok" if ready else "degraded",
        "timestamp": _now(),
        "database": database,
        "grid": {"slots": list(grid.slots), "enforced": grid.enforce},
    }
    return JSONResponse(status_code=200 if ready else 503, content=payload)
