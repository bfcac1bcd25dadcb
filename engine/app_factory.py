# engine/app_factory.py
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import Body, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from engine.errors import ExtractionError
from engine.extract import ExtractionMode, extract_table
from engine.meta_models import DatabaseDesign, TableDesign
from generate.typescript import render_declarations

def _table_or_404(design: DatabaseDesign, name: str) -> TableDesign:
    table = design.get(name)
    if table is None:
        raise HTTPException(status_code=404, detail=f"Unknown table '{name}'")
    return table

def create_app(design: DatabaseDesign, mode: ExtractionMode = ExtractionMode.AGGREGATE) -> FastAPI:
    """
    HTTP surface over an already-loaded design. The design and the table
    extraction mode are fixed for the life of the app (app.state).
    """
    app = FastAPI(title="Schema Extract Engine", version="0.1.0")
    app.state.design = design
    app.state.extraction_mode = ExtractionMode(mode)

    @app.exception_handler(ExtractionError)
    async def _extraction_error(request: Request, exc: ExtractionError):
        return JSONResponse(status_code=422, content={"detail": exc.to_dict()})

    @app.post("/extract/{table_name}")
    def extract_record(
        request: Request,
        table_name: str,
        payload: Any = Body(...),
        input_mode: bool = Query(False, alias="input"),
    ) -> Dict[str, Any]:
        table = _table_or_404(request.app.state.design, table_name)
        record = extract_table(
            table, payload, request.app.state.extraction_mode, input_mode=input_mode
        )
        return {"table": record.table, "values": record.to_json(), "absent": list(record.absent)}

    @app.get("/meta")
    def get_meta(request: Request, table: Optional[str] = None):
        d: DatabaseDesign = request.app.state.design
        if table is not None:
            return _table_or_404(d, table).model_dump(mode="json", exclude_none=True)
        return d.model_dump(mode="json", exclude_none=True)

    @app.get("/entities")
    def list_entities(request: Request):
        return list(request.app.state.design.table_names)

    @app.get("/types", response_class=PlainTextResponse)
    def get_types(request: Request):
        return render_declarations(request.app.state.design)

    @app.get("/healthz")
    def healthz(request: Request):
        return {"status": "ok", "tables": len(request.app.state.design.tables)}

    return app
