"""Satellite survey HTTP server.

Exposes:
  GET    /health                       — liveness + active backend
  GET    /satellites                   — projected list (search/filter/sort)
  GET    /satellites/export            — CSV download
  POST   /satellites/import            — CSV body, bulk import
  GET    /satellites/{id}              — one record
  POST   /satellites                   — create
  PUT    /satellites/{id}              — update
  DELETE /satellites/{id}?confirm=true — delete
  GET    /sensors                      — read-only sensor list
  GET    /statistics                   — aggregate counts

Start with::

    python -m satsurvey serve
    # or
    uvicorn satsurvey.server:app --host 0.0.0.0 --port 5200
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict
from typing import Any

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from satsurvey import __version__
from satsurvey.config import SurveyConfig
from satsurvey.facade import (
    KIND_BACKEND,
    KIND_BUSY,
    KIND_CANCELLED,
    KIND_EMPTY,
    KIND_NOT_FOUND,
    KIND_VALIDATION,
    OperationResult,
    SurveyFacade,
)
from satsurvey.records import DEFAULT_STATUS, SATELLITE_COLUMNS
from satsurvey.view import FILTER_ALL, SORT_ASC, SurveyView

logger = logging.getLogger(__name__)

# ──────────────────────────────────────────────────────────────────
# FastAPI app
# ──────────────────────────────────────────────────────────────────

app = FastAPI(title="Satellite Sensor Survey", version=__version__)

_facade: SurveyFacade | None = None
_config: SurveyConfig | None = None
_facade_lock = asyncio.Lock()

_STATUS_BY_KIND = {
    KIND_VALIDATION: 422,
    KIND_NOT_FOUND: 404,
    KIND_BUSY: 409,
    KIND_BACKEND: 503,
    KIND_CANCELLED: 400,
    KIND_EMPTY: 404,
}


async def _get_facade() -> SurveyFacade:
    global _facade
    if _facade is None:
        async with _facade_lock:
            if _facade is None:
                facade = SurveyFacade.from_config(_config or SurveyConfig.from_env())
                await facade.start()
                # Published only after the initial load.
                _facade = facade
    return _facade


def set_facade(facade: SurveyFacade | None) -> None:
    """Install a pre-built façade (useful for tests)."""
    global _facade
    _facade = facade


# ──────────────────────────────────────────────────────────────────
# Request / Response models
# ──────────────────────────────────────────────────────────────────

class SatelliteForm(BaseModel):
    Title: str = ""
    NORAD_ID: str = ""
    COSPAR_ID: str = ""
    Mission_Type: str = ""
    Status: str = DEFAULT_STATUS
    Orbit_Type: str = ""
    Launch_Date: str = ""
    Sensor_Names: str = ""


def _result_body(result: OperationResult) -> dict[str, Any]:
    body: dict[str, Any] = {
        "success": result.success,
        "kind": result.kind,
        "message": result.message,
        "level": result.level,
    }
    if result.record is not None:
        body["record"] = result.record.to_dict()
    if result.errors:
        body["errors"] = [asdict(e) for e in result.errors]
    if result.imported or result.skipped or result.failures:
        body["imported"] = result.imported
        body["skipped"] = result.skipped
        body["failures"] = result.failures
    return body


def _respond(result: OperationResult, success_status: int = 200) -> JSONResponse:
    status = success_status if result.success else _STATUS_BY_KIND.get(result.kind, 500)
    return JSONResponse(_result_body(result), status_code=status)


# ──────────────────────────────────────────────────────────────────
# Endpoints
# ──────────────────────────────────────────────────────────────────

@app.get("/health")
async def health():
    facade = await _get_facade()
    return {"status": "ok", "backend": facade.backend_name}


@app.get("/satellites")
async def list_satellites(
    search: str = "",
    filter: str = FILTER_ALL,
    sort: str = "Title",
    direction: str = Query(SORT_ASC, pattern="^(asc|desc)$"),
):
    facade = await _get_facade()
    if sort not in SATELLITE_COLUMNS:
        raise HTTPException(status_code=400, detail=f"Unknown sort column {sort!r}")
    # Request-scoped view; the session view keeps its own settings.
    view = SurveyView(sort_column=sort, sort_direction=direction)
    view.set_search(search)
    try:
        view.set_filter(filter)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    snapshot = view.snapshot(facade.satellites, facade.sensors)
    return {
        "count": snapshot.count,
        "statistics": asdict(snapshot.statistics),
        "satellites": [r.to_dict() for r in snapshot.satellites],
    }


@app.get("/satellites/export")
async def export_satellites():
    facade = await _get_facade()
    result = facade.export()
    if not result.success:
        return _respond(result)
    return PlainTextResponse(
        result.content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{result.filename}"'},
    )


@app.post("/satellites/import")
async def import_satellites(raw: Request):
    facade = await _get_facade()
    body = await raw.body()
    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise HTTPException(status_code=400, detail="CSV must be UTF-8 encoded") from exc
    return _respond(await facade.import_text(text))


@app.get("/satellites/{record_id}")
async def get_satellite(record_id: int):
    facade = await _get_facade()
    record = facade.state.find(record_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Satellite {record_id} not found")
    return record.to_dict()


@app.post("/satellites")
async def create_satellite(form: SatelliteForm):
    facade = await _get_facade()
    return _respond(await facade.create(form.model_dump()), success_status=201)


@app.put("/satellites/{record_id}")
async def update_satellite(record_id: int, form: SatelliteForm):
    facade = await _get_facade()
    return _respond(await facade.update(record_id, form.model_dump()))


@app.delete("/satellites/{record_id}")
async def delete_satellite(record_id: int, confirm: bool = False):
    facade = await _get_facade()
    return _respond(await facade.delete(record_id, confirm=lambda _prompt: confirm))


@app.get("/sensors")
async def list_sensors():
    facade = await _get_facade()
    return {"sensors": [s.to_dict() for s in facade.sensors]}


@app.get("/statistics")
async def get_statistics():
    facade = await _get_facade()
    return asdict(facade.snapshot().statistics)


# ──────────────────────────────────────────────────────────────────
# Entry point
# ──────────────────────────────────────────────────────────────────

def main(config: SurveyConfig | None = None):
    global _config
    import uvicorn
    config = _config = config or SurveyConfig.from_env()
    logging.basicConfig(level=config.log_level.upper())
    logger.info("Starting Satellite Survey server on %s:%d", config.host, config.port)
    uvicorn.run(app, host=config.host, port=config.port)


if __name__ == "__main__":
    main()
