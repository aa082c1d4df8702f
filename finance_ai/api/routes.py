"""API routes.

Failures below this boundary arrive as typed exceptions (translator) or typed results (data
sources); this module maps them to status codes and `{"error": ...}` bodies.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import Any

from fastapi import APIRouter, Body, Query, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from finance_ai.analytics import summarize_clients, summarize_tenders
from finance_ai.app import App
from finance_ai.api.schemas import ChatRequest
from finance_ai.data.records import ResultStatus
from finance_ai.query.descriptor import Filter, Operator, QueryDescriptor, unwrap_payload
from finance_ai.query.registry import Table, describe
from finance_ai.translator.extract import TranslationParseError
from finance_ai.translator.llm_client import TranslationServiceError, TranslationTransportError
from finance_ai.translator.translator import TranslationInputError, translate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def _app(request: Request) -> App:
    return request.app.state.finance_app


def _error(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse({"error": message, **extra}, status_code=status_code)


@router.post("/chat")
async def chat(request: Request, body: dict[str, Any] | None = Body(default=None)) -> Any:
    """Translate a chat message into a table request."""

    app = _app(request)
    try:
        chat_request = ChatRequest.model_validate(body or {})
    except ValidationError:
        return _error(400, "Некорректный запрос")

    try:
        translation = await asyncio.to_thread(
            translate,
            chat_request.message,
            chat_request.history,
            active_table=chat_request.active_table,
            config=app.llm_config,
        )
    except TranslationInputError as exc:
        return _error(400, str(exc))
    except TranslationServiceError as exc:
        status_code = 502 if exc.status == 502 else 500
        return _error(status_code, str(exc), status=exc.status)
    except TranslationParseError as exc:
        logger.error("model output not parseable raw=%r", exc.raw[:1000])
        return _error(502, str(exc), raw=exc.raw)
    except TranslationTransportError as exc:
        return _error(500, str(exc))

    return {
        "reply": translation.reply,
        "data": translation.response_data(),
        "activeTable": translation.active_table,
    }


@router.get("/data")
async def get_data(request: Request, table: str = Query(default="clients")) -> Any:
    """Full row set of one table; unknown names fall back to `clients`."""

    result = await _app(request).source.fetch(table)
    return result.model_dump(mode="json")


@router.post("/data")
async def query_data(request: Request, body: dict[str, Any] | None = Body(default=None)) -> Any:
    """Rows narrowed by a descriptor (`{tableRequest: ...}` or a bare descriptor)."""

    try:
        descriptor = unwrap_payload(body or {}).table_request
    except (ValueError, ValidationError) as exc:
        return _error(400, f"Некорректный запрос к таблице: {exc}")

    result = await _app(request).source.fetch_by_descriptor(descriptor)
    return result.model_dump(mode="json")


@router.get("/analytics/tenders")
async def tender_analytics(
        request: Request,
        date_from: date | None = None,
        date_to: date | None = None,
        agency: list[str] | None = Query(default=None),
) -> Any:
    """Tender headline numbers within an optional start-date window."""

    date_field = describe(Table.tenders).default_date_field or "tender_start"
    filters: list[Filter] = []
    if date_from is not None:
        filters.append(Filter(field=date_field, operator=Operator.gte, value=date_from.isoformat()))
    if date_to is not None:
        filters.append(Filter(field=date_field, operator=Operator.lte, value=date_to.isoformat()))

    result = await _app(request).source.fetch_by_descriptor(
        QueryDescriptor(table=Table.tenders, filters=filters)
    )
    if result.status in (ResultStatus.not_configured, ResultStatus.query_error):
        return _error(503, result.error or "Не удалось загрузить данные", status=result.status)

    summary = summarize_tenders(result.rows, agencies=agency)
    return summary.model_dump(mode="json")


@router.get("/analytics/clients")
async def client_analytics(request: Request) -> Any:
    """Client counts by category and the tender budget share of top-30 clients."""

    source = _app(request).source
    clients, tenders = await asyncio.gather(
        source.fetch_by_descriptor(QueryDescriptor(table=Table.clients)),
        source.fetch_by_descriptor(QueryDescriptor(table=Table.tenders)),
    )
    for result in (clients, tenders):
        if result.status in (ResultStatus.not_configured, ResultStatus.query_error):
            return _error(503, result.error or "Не удалось загрузить данные", status=result.status)

    summary = summarize_clients(clients.rows, tenders.rows)
    return summary.model_dump(mode="json")


@router.get("/health")
async def health(request: Request) -> Any:
    app = _app(request)
    return {
        "status": "ok",
        "llm": "configured" if app.llm_config is not None else "offline",
        "data_source": app.settings.data_source,
        "database": "configured" if app.pool is not None else "not_configured",
    }
