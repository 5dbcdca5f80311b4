from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from pydantic import ValidationError

from file_to_json.schema_models import ConversionOptions

logger = logging.getLogger(__name__)

DEFAULT_OCR_LANGUAGE = "eng"


@dataclass
class OptionsSource:
    options: ConversionOptions
    source: str

    def to_dict(self) -> dict:
        return {"options": self.options.model_dump(), "source": self.source}


def load_default_options(path: str | None = None) -> OptionsSource:
    configured_path = path or os.getenv("FILE_TO_JSON_OPTIONS_PATH", "data/conversion_options.json")
    file_path = Path(configured_path)

    if file_path.exists():
        try:
            raw = json.loads(file_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("Ignoring malformed options file %s", file_path)
            return OptionsSource(options=ConversionOptions(), source="default")

        if isinstance(raw, dict):
            try:
                return OptionsSource(options=ConversionOptions.model_validate(raw), source=str(file_path))
            except ValidationError as exc:
                logger.warning("Ignoring invalid options file %s: %s", file_path, exc)

    return OptionsSource(options=ConversionOptions(), source="default")


def get_ocr_language() -> str:
    return (os.getenv("FILE_TO_JSON_OCR_LANGUAGE") or DEFAULT_OCR_LANGUAGE).strip() or DEFAULT_OCR_LANGUAGE
