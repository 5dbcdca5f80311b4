from __future__ import annotations

import base64
import os
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from fastapi import FastAPI, File, Form, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from file_to_json.conversion import run_batch
from file_to_json.conversion_config import load_default_options
from file_to_json.errors import ConversionError
from file_to_json.schema_models import ConversionOptions, InputItemModel

app = FastAPI(title="File to JSON Conversion API")


@app.middleware("http")
async def api_prefix_alias(request, call_next):
    """Accept both `/path` and `/api/path` for frontend compatibility."""
    if request.scope.get("path", "").startswith("/api/"):
        request.scope["path"] = request.scope["path"][4:]
    return await call_next(request)

DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://127.0.0.1:3000"
CORS_ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("FILE_TO_JSON_CORS_ALLOWED_ORIGINS", DEFAULT_CORS_ORIGINS).split(",")
    if origin.strip()
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class ConvertRequest(BaseModel):
    items: list[InputItemModel]
    options: ConversionOptions | None = None
    item_options: list[dict[str, Any]] | None = Field(default=None)


def _error_message(error: Exception) -> str:
    if isinstance(error, ConversionError):
        return error.message
    return str(error)


def _conversion_response(items: list[InputItemModel], resolver, fallback_options: ConversionOptions) -> Any:
    outcome = run_batch(items, resolver, fallback_options=fallback_options)
    if outcome.aborted:
        return JSONResponse(
            status_code=422,
            content={
                "status": "error",
                "message": _error_message(outcome.error),
                "item_index": outcome.failed_index,
            },
        )
    return {"status": "success", "items": outcome.records}


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.get("/config/options")
def default_options():
    return load_default_options().to_dict()


@app.post("/convert")
def convert(request: ConvertRequest):
    base_options = request.options or load_default_options().options
    overrides = request.item_options or []

    if overrides and len(overrides) != len(request.items):
        return JSONResponse(
            status_code=400,
            content={
                "status": "error",
                "message": "item_options must provide one entry per item.",
            },
        )

    try:
        resolved = [base_options.merged(override) for override in overrides]
    except ValidationError as exc:
        return JSONResponse(
            status_code=400,
            content={"status": "error", "message": f"Invalid item_options: {exc}"},
        )

    def resolve(index: int, _item) -> ConversionOptions:
        return resolved[index] if resolved else base_options

    return _conversion_response(request.items, resolve, base_options)


@app.post("/convert/upload")
async def convert_upload(
    file: UploadFile = File(...),
    include_file_name: bool = Form(True),
    include_sheet_name: bool = Form(True),
    include_row_numbers: bool = Form(False),
    separate_sheets: bool = Form(False),
):
    content = await file.read()
    options = load_default_options().options.merged(
        {
            "include_file_name": include_file_name,
            "include_sheet_name": include_sheet_name,
            "include_row_numbers": include_row_numbers,
            "separate_sheets": separate_sheets,
            "continue_on_failure": False,
        }
    )
    item = InputItemModel.model_validate(
        {
            "binary": {
                options.binary_property_name: {
                    "data": base64.b64encode(content).decode("ascii"),
                    "mimeType": file.content_type or "",
                    "fileName": file.filename or "",
                }
            }
        }
    )
    return _conversion_response([item], lambda _index, _item: options, options)
