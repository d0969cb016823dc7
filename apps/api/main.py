"""FastAPI wrapper for the mapping editor core.

The service is stateless: clients send the working mappings (and the
baseline, for diffs) with every request.
"""

from __future__ import annotations

import importlib.metadata
import json
import logging
import os
import time
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import asdict
from typing import Annotated, Any

from fastapi import FastAPI, File, Request, UploadFile
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from core.config.settings_loader import EditorSettings, default_settings
from core.mapping.changeset import compute_changes
from core.mapping.model import MappingModel
from core.mapping.models import BaselineSnapshot, MappingRecord
from core.mapping.plugins import TRANSFORMATION_PLUGINS
from core.preview.sample_renderer import render_preview
from core.schema.field_extractor import extract_fields, load_schema_text
from core.templates.template_generator import generate_template
from core.templates.template_parser import parse_template
from core.utils.errors import InputLimitError, SchemaParseError

app = FastAPI(title="ftl-mapper API", version="0.1.0")
logger = logging.getLogger("ftlmap.api")

_DEFAULT_MAX_UPLOAD_BYTES = 5 * 1024 * 1024
_REQUEST_ID_HEADER = "X-Ftlmap-Request-Id"

EndpointAction = Callable[[], Awaitable[Response]]


class ApiRequestError(Exception):
    def __init__(
        self,
        *,
        status_code: int,
        error_code: str,
        message: str,
        detail: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.message = message
        self.detail = detail or {}


class BaselinePayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    version: int = 0
    records: list[MappingRecord] = Field(default_factory=list)


class MappingsRequest(BaseModel):
    """Body for generation."""

    model_config = ConfigDict(extra="forbid")

    mappings: list[MappingRecord]


class ChangesRequest(BaseModel):
    """Body for change set computation."""

    model_config = ConfigDict(extra="forbid")

    mappings: list[MappingRecord]
    baseline: BaselinePayload


class PreviewRequest(BaseModel):
    """Body for sample preview."""

    model_config = ConfigDict(extra="forbid")

    mappings: list[MappingRecord]
    sample: dict[str, Any]


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Ensure every response has a request id header."""

    request_id = uuid.uuid4().hex
    request.state.request_id = request_id
    try:
        response = await call_next(request)
    except Exception:  # noqa: BLE001
        _log_event(
            logging.ERROR,
            "error",
            request_id,
            error_code="INTERNAL_ERROR",
            status_code=500,
            failure_stage="middleware",
        )
        response = _error_response(
            status_code=500,
            error_code="INTERNAL_ERROR",
            message="internal server error",
            request_id=request_id,
            detail={"path": request.url.path},
        )
    response.headers.setdefault(_REQUEST_ID_HEADER, request_id)
    return response


@app.get("/healthz")
async def healthz() -> dict[str, str]:
    """Liveness endpoint."""

    return {"status": "ok"}


@app.get("/v1/meta")
async def meta_v1(request: Request) -> JSONResponse:
    """Capabilities for editor clients."""

    request_id = _request_id_from_request(request)
    if not _meta_enabled():
        return _error_response(
            status_code=404,
            error_code="NOT_FOUND",
            message="meta endpoint is disabled",
            request_id=request_id,
            detail={"path": request.url.path},
        )

    settings = default_settings()
    payload = {
        "transformations": [
            {
                "id": plugin.id,
                "label": plugin.label,
                "edit_fields": sorted(plugin.edit_fields),
            }
            for plugin in TRANSFORMATION_PLUGINS.values()
        ],
        "template_suffixes": list(settings.template_suffixes),
        "export_filename": settings.export_filename,
        "export_media_type": settings.export_media_type,
        "max_upload_bytes": _max_upload_bytes(),
        "version": _package_version(),
    }
    return JSONResponse(status_code=200, headers={_REQUEST_ID_HEADER: request_id}, content=payload)


@app.post("/v1/fields", response_model=None)
async def fields_v1(
    request: Request, schema: Annotated[UploadFile, File(...)]
) -> Response:
    """Extract field descriptors from one schema document."""

    async def action() -> Response:
        settings = default_settings()
        _validate_upload_name(schema.filename, allowed=(".json",), field_name="schema")
        document = _load_schema_upload(schema, field_name="schema")
        fields = extract_fields(
            document, type_aliases=settings.type_aliases, max_depth=settings.max_schema_depth
        )
        return _json_ok(request, {"fields": [asdict(item) for item in fields]})

    return await _run_endpoint(request, "fields", action)


@app.post("/v1/parse", response_model=None)
async def parse_v1(
    request: Request, template: Annotated[UploadFile, File(...)]
) -> Response:
    """Parse template text into mappings plus the matching baseline."""

    async def action() -> Response:
        settings = default_settings()
        _validate_upload_name(
            template.filename, allowed=settings.template_suffixes, field_name="template"
        )
        text = _read_text_upload(template, field_name="template")
        try:
            result = parse_template(
                text,
                max_lines=settings.max_template_lines,
                max_depth=settings.max_nesting_depth,
            )
        except InputLimitError as exc:
            raise ApiRequestError(
                status_code=413,
                error_code="INPUT_TOO_LARGE",
                message="template exceeds line limit",
                detail={"field": "template", "limit": exc.limit, "actual": exc.actual},
            ) from exc

        model = MappingModel()
        model.replace_all(result.mappings)
        return _json_ok(
            request,
            {
                "mappings": _dump_records(model.records),
                "skipped": [asdict(item) for item in result.skipped],
                "baseline": _dump_baseline(model.baseline),
            },
        )

    return await _run_endpoint(request, "parse", action)


@app.post("/v1/automap", response_model=None)
async def automap_v1(
    request: Request,
    input_schema: Annotated[UploadFile, File(...)],
    output_schema: Annotated[UploadFile, File(...)],
) -> Response:
    """Suggest direct mappings between two schema documents."""

    async def action() -> Response:
        settings = default_settings()
        _validate_upload_name(input_schema.filename, allowed=(".json",), field_name="input_schema")
        _validate_upload_name(
            output_schema.filename, allowed=(".json",), field_name="output_schema"
        )
        input_fields = _extract(_load_schema_upload(input_schema, "input_schema"), settings)
        output_fields = _extract(_load_schema_upload(output_schema, "output_schema"), settings)

        model = MappingModel()
        records = model.auto_map(input_fields, output_fields)
        return _json_ok(
            request,
            {
                "mappings": _dump_records(records),
                "baseline": _dump_baseline(model.baseline),
                "input_fields": [asdict(item) for item in input_fields],
                "output_fields": [asdict(item) for item in output_fields],
            },
        )

    return await _run_endpoint(request, "automap", action)


@app.post("/v1/generate", response_model=None)
async def generate_v1(request: Request) -> Response:
    """Render mappings to template text as a downloadable attachment."""

    async def action() -> Response:
        settings = default_settings()
        body = await _load_body(request, MappingsRequest)
        text = generate_template(
            body.mappings,
            indent=settings.indent,
            else_text=settings.conditional_else_text,
        )
        return PlainTextResponse(
            content=text,
            media_type=settings.export_media_type,
            headers={
                _REQUEST_ID_HEADER: _request_id_from_request(request),
                "Content-Disposition": f'attachment; filename="{settings.export_filename}"',
            },
        )

    return await _run_endpoint(request, "generate", action)


@app.post("/v1/changes", response_model=None)
async def changes_v1(request: Request) -> Response:
    """Classify mappings against the baseline snapshot."""

    async def action() -> Response:
        body = await _load_body(request, ChangesRequest)
        baseline = BaselineSnapshot(
            version=body.baseline.version, records=tuple(body.baseline.records)
        )
        changes = compute_changes(body.mappings, baseline)
        payload = changes.model_dump(mode="json")
        payload["summary"] = changes.summary().model_dump(mode="json")
        return _json_ok(request, payload)

    return await _run_endpoint(request, "changes", action)


@app.post("/v1/preview", response_model=None)
async def preview_v1(request: Request) -> Response:
    """Evaluate mappings against a sample input document."""

    async def action() -> Response:
        settings = default_settings()
        body = await _load_body(request, PreviewRequest)
        result = render_preview(
            body.mappings, body.sample, else_text=settings.conditional_else_text
        )
        return _json_ok(
            request,
            {"output": result.output, "issues": [asdict(item) for item in result.issues]},
        )

    return await _run_endpoint(request, "preview", action)


async def _run_endpoint(request: Request, endpoint: str, action: EndpointAction) -> Response:
    started = time.perf_counter()
    request_id = _request_id_from_request(request)
    _log_event(logging.INFO, "start", request_id, endpoint=endpoint)

    try:
        response = await action()
    except ApiRequestError as exc:
        _log_event(
            logging.ERROR,
            "error",
            request_id,
            endpoint=endpoint,
            error_code=exc.error_code,
            status_code=exc.status_code,
            duration_ms=_elapsed_ms(started),
        )
        return _error_response(
            status_code=exc.status_code,
            error_code=exc.error_code,
            message=exc.message,
            request_id=request_id,
            detail=exc.detail,
        )
    except Exception as exc:  # noqa: BLE001
        _log_event(
            logging.ERROR,
            "error",
            request_id,
            endpoint=endpoint,
            error_code="INTERNAL_ERROR",
            status_code=500,
            duration_ms=_elapsed_ms(started),
        )
        return _error_response(
            status_code=500,
            error_code="INTERNAL_ERROR",
            message="internal server error",
            request_id=request_id,
            detail={"error": str(exc)},
        )

    _log_event(
        logging.INFO,
        "done",
        request_id,
        endpoint=endpoint,
        status_code=response.status_code,
        duration_ms=_elapsed_ms(started),
    )
    return response


def _request_id_from_request(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if isinstance(request_id, str) and request_id:
        return request_id
    generated = uuid.uuid4().hex
    request.state.request_id = generated
    return generated


def _meta_enabled() -> bool:
    raw = os.getenv("FTLMAP_ENABLE_META", "1").strip().lower()
    return raw not in {"0", "false", "off", "no"}


def _validate_upload_name(
    filename: str | None, *, allowed: tuple[str, ...], field_name: str
) -> None:
    if filename is None or not filename.lower().endswith(allowed):
        raise ApiRequestError(
            status_code=415,
            error_code="INVALID_MEDIA_TYPE",
            message=f"{field_name} must be one of: {', '.join(allowed)}",
            detail={"field": field_name, "filename": filename},
        )


def _read_upload_with_limit(*, upload: UploadFile, max_bytes: int, field_name: str) -> bytes:
    chunks: list[bytes] = []
    total_size = 0

    source = upload.file
    source.seek(0)
    while True:
        chunk = source.read(1024 * 1024)
        if not chunk:
            break
        total_size += len(chunk)
        if total_size > max_bytes:
            raise ApiRequestError(
                status_code=413,
                error_code="UPLOAD_TOO_LARGE",
                message=f"{field_name} exceeds upload size limit",
                detail={
                    "field": field_name,
                    "max_bytes": max_bytes,
                    "received_bytes": total_size,
                },
            )
        chunks.append(chunk)

    source.close()
    return b"".join(chunks)


def _read_text_upload(upload: UploadFile, field_name: str) -> str:
    raw = _read_upload_with_limit(
        upload=upload, max_bytes=_max_upload_bytes(), field_name=field_name
    )
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise ApiRequestError(
            status_code=400,
            error_code="INVALID_ENCODING",
            message=f"{field_name} must be UTF-8 text",
            detail={"field": field_name},
        ) from exc


def _load_schema_upload(upload: UploadFile, field_name: str) -> dict[str, Any]:
    text = _read_text_upload(upload, field_name)
    try:
        return load_schema_text(text)
    except SchemaParseError as exc:
        raise ApiRequestError(
            status_code=400,
            error_code="INVALID_JSON",
            message=f"{field_name} must be a JSON object",
            detail={"field": field_name, "error": str(exc), "line": exc.line},
        ) from exc


async def _load_body(request: Request, model: type[BaseModel]) -> Any:
    raw_body = await request.body()
    if len(raw_body) > _max_upload_bytes():
        raise ApiRequestError(
            status_code=413,
            error_code="UPLOAD_TOO_LARGE",
            message="request body exceeds size limit",
            detail={"max_bytes": _max_upload_bytes(), "received_bytes": len(raw_body)},
        )

    try:
        raw = json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ApiRequestError(
            status_code=400,
            error_code="INVALID_JSON",
            message="request body must be valid JSON",
            detail={"error": str(exc)},
        ) from exc

    if not isinstance(raw, dict):
        raise ApiRequestError(
            status_code=400,
            error_code="INVALID_JSON",
            message="request body must be a JSON object",
        )

    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        raise ApiRequestError(
            status_code=422,
            error_code="INVALID_ARGUMENT",
            message="request body schema validation failed",
            detail={"errors": json.loads(exc.json())},
        ) from exc


def _extract(document: dict[str, Any], settings: EditorSettings):
    return extract_fields(
        document, type_aliases=settings.type_aliases, max_depth=settings.max_schema_depth
    )


def _dump_records(records: list[MappingRecord]) -> list[dict[str, Any]]:
    return [record.model_dump(mode="json") for record in records]


def _dump_baseline(baseline: BaselineSnapshot) -> dict[str, Any]:
    return {"version": baseline.version, "records": _dump_records(list(baseline.records))}


def _max_upload_bytes() -> int:
    raw = os.getenv("FTLMAP_MAX_UPLOAD_BYTES")
    if raw is None:
        return _DEFAULT_MAX_UPLOAD_BYTES
    try:
        parsed = int(raw)
    except ValueError:
        return _DEFAULT_MAX_UPLOAD_BYTES
    return parsed if parsed > 0 else _DEFAULT_MAX_UPLOAD_BYTES


def _json_ok(request: Request, payload: dict[str, Any]) -> JSONResponse:
    return JSONResponse(
        status_code=200,
        headers={_REQUEST_ID_HEADER: _request_id_from_request(request)},
        content=payload,
    )


def _package_version() -> str:
    try:
        return importlib.metadata.version("ftl-mapper")
    except importlib.metadata.PackageNotFoundError:
        return app.version


def _error_response(
    *,
    status_code: int,
    error_code: str,
    message: str,
    request_id: str,
    detail: dict[str, Any] | None = None,
) -> JSONResponse:
    payload_detail = dict(detail or {})
    payload_detail["request_id"] = request_id

    return JSONResponse(
        status_code=status_code,
        headers={_REQUEST_ID_HEADER: request_id},
        content={
            "error_code": error_code,
            "message": message,
            "detail": payload_detail,
        },
    )


def _elapsed_ms(start: float) -> int:
    return max(0, int((time.perf_counter() - start) * 1000))


def _dump_json(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":"))


def _log_event(level: int, event: str, request_id: str, **fields: Any) -> None:
    payload = {
        "event": event,
        "request_id": request_id,
        **fields,
    }
    logger.log(level, _dump_json(payload))
