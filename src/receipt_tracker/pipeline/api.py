from __future__ import annotations

from typing import List, Optional

from starlette.applications import Starlette
from starlette.exceptions import HTTPException
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from ..diagnostics import LastParseRecorder
from ..domain.categorizer import BUILT_IN_RULES, BUILT_IN_RULES_VERSION
from ..domain.review import reconcile
from ..errors import SettingsError
from ..logging import get_logger, recent_logs
from ..settings import SettingsStore, open_store
from .service import ReceiptService


LOG = get_logger("api")


async def _json_body(request: Request) -> dict:
    try:
        body = await request.json()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Request body must be JSON") from exc
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Request body must be a JSON object")
    return body


def create_app(
    store: Optional[SettingsStore] = None,
    *,
    recorder: Optional[LastParseRecorder] = None,
    allow_origins: Optional[List[str]] = None,
    root_dir: Optional[str] = None,
) -> Starlette:
    """Create a Starlette app exposing parsing, keyword rules and debug views.

    Debug endpoints answer 404 unless a recorder is supplied.
    """
    store = store or open_store(root_dir)
    service = ReceiptService(store, observer=recorder)
    LOG.info(f"Receipt API using settings at {store.path}")

    async def health(_: Request) -> JSONResponse:
        return JSONResponse({"status": "ok", "rules_version": BUILT_IN_RULES_VERSION})

    async def parse(request: Request) -> JSONResponse:
        body = await _json_body(request)
        text = body.get("text")
        if not isinstance(text, str):
            raise HTTPException(status_code=400, detail="'text' must be a string")
        receipt = service.parse_text(text)
        payload = receipt.to_dict()
        payload["reconciliation"] = reconcile(receipt).to_dict()
        return JSONResponse(payload)

    async def review(request: Request) -> JSONResponse:
        body = await _json_body(request)
        text = body.get("text")
        if not isinstance(text, str):
            raise HTTPException(status_code=400, detail="'text' must be a string")
        receipt = service.parse_text(text)
        payload = service.review_draft(receipt).to_dict()
        payload["reconciliation"] = reconcile(receipt).to_dict()
        return JSONResponse(payload)

    async def get_currency(_: Request) -> JSONResponse:
        return JSONResponse({"currency": store.currency()})

    async def set_currency(request: Request) -> JSONResponse:
        body = await _json_body(request)
        code = body.get("currency")
        if not isinstance(code, str):
            raise HTTPException(status_code=400, detail="'currency' must be a string")
        try:
            saved = store.set_currency(code)
        except SettingsError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return JSONResponse({"currency": saved})

    async def list_rules(_: Request) -> JSONResponse:
        return JSONResponse(
            {
                "user": [{"keyword": r.keyword, "category": r.category} for r in store.keyword_rules()],
                "built_in": [{"keyword": r.keyword, "category": r.category} for r in BUILT_IN_RULES],
            }
        )

    async def add_rule(request: Request) -> JSONResponse:
        body = await _json_body(request)
        keyword, category = body.get("keyword"), body.get("category")
        if not isinstance(keyword, str) or not isinstance(category, str):
            raise HTTPException(status_code=400, detail="'keyword' and 'category' must be strings")
        try:
            rule = store.add_keyword_rule(keyword, category)
        except SettingsError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return JSONResponse({"keyword": rule.keyword, "category": rule.category}, status_code=201)

    async def delete_rule(request: Request) -> Response:
        if not store.remove_keyword_rule(request.path_params["keyword"]):
            raise HTTPException(status_code=404, detail="Rule not found")
        return Response(status_code=204)

    async def last_parse(_: Request) -> JSONResponse:
        if recorder is None:
            raise HTTPException(status_code=404, detail="Debug recorder disabled")
        return JSONResponse(recorder.snapshot())

    async def logs(request: Request) -> JSONResponse:
        if recorder is None:
            raise HTTPException(status_code=404, detail="Debug recorder disabled")
        qp = request.query_params
        entries = recent_logs(tag=qp.get("tag") or None, level=qp.get("level") or None)
        return JSONResponse({"items": [e.to_dict() for e in reversed(entries)]})

    routes = [
        Route("/api/health", health, methods=["GET"]),
        Route("/api/parse", parse, methods=["POST"]),
        Route("/api/review", review, methods=["POST"]),
        Route("/api/settings/currency", get_currency, methods=["GET"]),
        Route("/api/settings/currency", set_currency, methods=["PUT"]),
        Route("/api/rules", list_rules, methods=["GET"]),
        Route("/api/rules", add_rule, methods=["POST"]),
        Route("/api/rules/{keyword:str}", delete_rule, methods=["DELETE"]),
        Route("/api/debug/last-parse", last_parse, methods=["GET"]),
        Route("/api/debug/logs", logs, methods=["GET"]),
    ]

    app = Starlette(debug=False, routes=routes)

    origins = allow_origins or ["http://localhost:5173", "http://127.0.0.1:5173"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if "*" in origins else origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    return app


__all__ = ["create_app"]
