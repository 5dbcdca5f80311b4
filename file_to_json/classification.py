from __future__ import annotations

import logging
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)


class FormatCategory(str, Enum):
    PDF = "pdf"
    WORD = "word"
    SPREADSHEET = "spreadsheet"
    CSV = "csv"
    IMAGE = "image"
    JSON = "json"
    TEXT = "text"
    UNSUPPORTED = "unsupported"


FormatRule = tuple[Callable[[str, str], bool], FormatCategory]

# Evaluated top to bottom; the first matching rule decides the category.
FORMAT_RULES: tuple[FormatRule, ...] = (
    (lambda mime, name: mime == "application/pdf" or name.endswith(".pdf"), FormatCategory.PDF),
    (lambda mime, name: "word" in mime or name.endswith(".docx"), FormatCategory.WORD),
    (
        lambda mime, name: "spreadsheet" in mime or name.endswith(".xlsx") or name.endswith(".xls"),
        FormatCategory.SPREADSHEET,
    ),
    (lambda mime, name: mime == "text/csv" or name.endswith(".csv"), FormatCategory.CSV),
    (lambda mime, name: mime.startswith("image/"), FormatCategory.IMAGE),
    (lambda mime, name: mime == "application/json" or name.endswith(".json"), FormatCategory.JSON),
    (lambda mime, name: mime.startswith("text/"), FormatCategory.TEXT),
)


def classify(mime_type: str | None, file_name: str | None) -> FormatCategory:
    mime = mime_type or ""
    name = file_name or ""

    for predicate, category in FORMAT_RULES:
        if predicate(mime, name):
            logger.debug("Classified %s (%s) as %s", name, mime or "<no mime>", category.value)
            return category

    logger.debug("No format rule matched %s (%s)", name, mime or "<no mime>")
    return FormatCategory.UNSUPPORTED
