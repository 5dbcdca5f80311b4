from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from file_to_json.classification import FormatCategory, classify
from file_to_json.errors import ConversionError, DecodeError, MissingBinaryData, UnsupportedFormat
from file_to_json.extractors import (
    ExtractionResult,
    Many,
    Single,
    extract_csv,
    extract_image,
    extract_json,
    extract_pdf,
    extract_spreadsheet,
    extract_text,
    extract_word,
)
from file_to_json.schema_models import ConversionOptions, InputItemModel, validate_input_item

logger = logging.getLogger(__name__)

OptionsResolver = Callable[[int, Any], ConversionOptions]
URL_SAFE_ALPHABET = str.maketrans("-_", "+/")


@dataclass(frozen=True)
class ItemSucceeded:
    records: list[dict]


@dataclass(frozen=True)
class ItemFailed:
    error: Exception

    @property
    def message(self) -> str:
        if isinstance(self.error, ConversionError):
            return self.error.message
        return str(self.error)


ItemOutcome = ItemSucceeded | ItemFailed


@dataclass
class BatchOutcome:
    records: list[dict] = field(default_factory=list)
    error: Exception | None = None
    failed_index: int | None = None

    @property
    def aborted(self) -> bool:
        return self.error is not None


def decode_payload(data: str | bytes) -> bytes:
    if isinstance(data, bytes):
        data = data.decode("ascii", errors="replace")
    data = "".join(data.split()).rstrip("=")
    # unpadded and url-safe alphabets are accepted
    data = data.translate(URL_SAFE_ALPHABET) + "=" * (-len(data) % 4)
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DecodeError(f"Binary data is not valid base64: {exc}") from exc


def extract(
    category: FormatCategory,
    content_bytes: bytes,
    options: ConversionOptions,
    *,
    mime_type: str = "",
) -> ExtractionResult:
    if category is FormatCategory.PDF:
        return extract_pdf(content_bytes)
    if category is FormatCategory.WORD:
        return extract_word(content_bytes)
    if category is FormatCategory.SPREADSHEET:
        return extract_spreadsheet(
            content_bytes,
            include_sheet_name=options.include_sheet_name,
            include_row_numbers=options.include_row_numbers,
            separate_sheets=options.separate_sheets,
        )
    if category is FormatCategory.CSV:
        return extract_csv(content_bytes, include_row_numbers=options.include_row_numbers)
    if category is FormatCategory.IMAGE:
        return extract_image(content_bytes)
    if category is FormatCategory.JSON:
        return extract_json(content_bytes)
    if category is FormatCategory.TEXT:
        return extract_text(content_bytes)
    raise UnsupportedFormat(mime_type)


def _with_file_name(record: object, file_name: str) -> object:
    if isinstance(record, dict):
        return {**record, "file_name": file_name}
    return record


def normalize(result: ExtractionResult, file_name: str, include_file_name: bool) -> list[dict]:
    """Flatten an extraction result into output records, one per record it holds."""
    if isinstance(result, Many):
        records = list(result.records)
    elif isinstance(result, Single):
        records = [result.record]
    else:
        raise TypeError(f"Unknown extraction result type: {type(result).__name__}")

    if include_file_name:
        return [_with_file_name(record, file_name) for record in records]
    return [dict(record) if isinstance(record, dict) else record for record in records]


def convert_item(item: InputItemModel | dict, options: ConversionOptions) -> list[dict]:
    model = item if isinstance(item, InputItemModel) else validate_input_item(item)

    attachment = model.binary.get(options.binary_property_name)
    if attachment is None:
        raise MissingBinaryData(options.binary_property_name)

    content_bytes = decode_payload(attachment.data)
    category = classify(attachment.mime_type, attachment.file_name)
    result = extract(category, content_bytes, options, mime_type=attachment.mime_type)
    return normalize(result, attachment.file_name, options.include_file_name)


def process_item(item: InputItemModel | dict, options: ConversionOptions) -> ItemOutcome:
    try:
        return ItemSucceeded(convert_item(item, options))
    except Exception as exc:  # noqa: BLE001
        return ItemFailed(exc)


def _resolve_options(
    options: ConversionOptions | OptionsResolver | None,
    index: int,
    item: Any,
) -> ConversionOptions:
    if options is None:
        return ConversionOptions()
    if isinstance(options, ConversionOptions):
        return options
    return options(index, item)


def run_batch(
    items: Iterable[InputItemModel | dict],
    options: ConversionOptions | OptionsResolver | None = None,
    *,
    fallback_options: ConversionOptions | None = None,
) -> BatchOutcome:
    """Convert items in order, isolating or aborting on the first failure per the item's options.

    When resolving an item's options fails, ``fallback_options`` decides the failure policy.
    """
    outcome = BatchOutcome()

    for index, item in enumerate(items):
        try:
            item_options = _resolve_options(options, index, item)
        except Exception as exc:  # noqa: BLE001
            item_options = fallback_options or ConversionOptions()
            item_outcome: ItemOutcome = ItemFailed(exc)
        else:
            item_outcome = process_item(item, item_options)

        if isinstance(item_outcome, ItemSucceeded):
            logger.info("Item %d converted into %d record(s)", index, len(item_outcome.records))
            outcome.records.extend(item_outcome.records)
            continue

        if item_options.continue_on_failure:
            logger.warning("Item %d failed, continuing: %s", index, item_outcome.message)
            outcome.records.append({"error": item_outcome.message})
            continue

        logger.error("Item %d failed, aborting batch: %s", index, item_outcome.message)
        outcome.error = item_outcome.error
        outcome.failed_index = index
        return outcome

    return outcome


def convert_batch(
    items: Iterable[InputItemModel | dict],
    options: ConversionOptions | OptionsResolver | None = None,
    *,
    fallback_options: ConversionOptions | None = None,
) -> list[dict]:
    outcome = run_batch(items, options, fallback_options=fallback_options)
    if outcome.error is not None:
        raise outcome.error
    return outcome.records
