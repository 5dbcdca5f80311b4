from __future__ import annotations

import io
import json
import logging
import zipfile
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any
from xml.etree import ElementTree as ET

import openpyxl
import pytesseract
import xlrd
from PIL import Image
from pypdf import PdfReader

from file_to_json.conversion_config import get_ocr_language
from file_to_json.errors import DecodeError, ExtractionFailed

logger = logging.getLogger(__name__)

WORD_NAMESPACE = "{http://schemas.openxmlformats.org/wordprocessingml/2006/main}"
OLE2_SIGNATURE = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"


@dataclass(frozen=True)
class Single:
    record: dict


@dataclass(frozen=True)
class Many:
    records: list


ExtractionResult = Single | Many


@dataclass(frozen=True)
class SheetTable:
    name: str
    rows: list[tuple]


def _decode_text(content_bytes: bytes) -> str:
    try:
        return content_bytes.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise DecodeError(f"Payload is not valid UTF-8 text: {exc}") from exc


def _as_record(value: object) -> dict:
    if isinstance(value, dict):
        return value
    return {"data": value}


# --- PDF -------------------------------------------------------------------


def _normalize_pdf_info(reader: PdfReader) -> dict:
    info: dict[str, Any] = {}
    header = (reader.pdf_header or "").replace("%PDF-", "").strip()
    if header:
        info["PDFFormatVersion"] = header

    metadata = reader.metadata or {}
    for key, value in metadata.items():
        info[str(key).lstrip("/")] = str(value)
    return info


def extract_pdf(content_bytes: bytes) -> Single:
    try:
        reader = PdfReader(io.BytesIO(content_bytes))
        if reader.is_encrypted and not reader.decrypt(""):
            raise ExtractionFailed("PDF is encrypted and cannot be read without a password.")

        page_texts = [(page.extract_text() or "").strip() for page in reader.pages]
        page_count = len(reader.pages)
        info = _normalize_pdf_info(reader)
    except ExtractionFailed:
        raise
    except Exception as exc:  # noqa: BLE001
        raise ExtractionFailed(f"PDF text extraction failed: {exc}") from exc

    return Single(
        {
            "text": "\n\n".join(text for text in page_texts if text),
            "pages": page_count,
            "info": info,
        }
    )


# --- Word ------------------------------------------------------------------


def _paragraph_text(paragraph: ET.Element) -> str:
    parts: list[str] = []
    for node in paragraph.iter():
        if node.tag == f"{WORD_NAMESPACE}t" and node.text:
            parts.append(node.text)
        elif node.tag == f"{WORD_NAMESPACE}tab":
            parts.append("\t")
        elif node.tag in {f"{WORD_NAMESPACE}br", f"{WORD_NAMESPACE}cr"}:
            parts.append("\n")
    return "".join(parts)


def extract_word(content_bytes: bytes) -> Single:
    try:
        with zipfile.ZipFile(io.BytesIO(content_bytes)) as archive:
            xml_payload = archive.read("word/document.xml")
        root = ET.fromstring(xml_payload)
    except (zipfile.BadZipFile, KeyError, ET.ParseError) as exc:
        raise ExtractionFailed(f"Word document could not be read: {exc}") from exc

    paragraphs = [_paragraph_text(paragraph) for paragraph in root.iter(f"{WORD_NAMESPACE}p")]
    return Single({"text": "".join(f"{paragraph}\n\n" for paragraph in paragraphs)})


# --- Spreadsheet -----------------------------------------------------------


def _json_cell_value(value: object) -> object:
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def _read_xlsx_sheets(content_bytes: bytes) -> list[SheetTable]:
    workbook = openpyxl.load_workbook(io.BytesIO(content_bytes), data_only=True)
    try:
        tables: list[SheetTable] = []
        for worksheet in workbook.worksheets:
            rows = list(
                worksheet.iter_rows(
                    min_row=worksheet.min_row,
                    min_col=worksheet.min_column,
                    values_only=True,
                )
            )
            tables.append(SheetTable(name=worksheet.title, rows=rows))
        return tables
    finally:
        workbook.close()


def _xls_cell_value(cell: xlrd.sheet.Cell, datemode: int) -> object:
    if cell.ctype in {xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK, xlrd.XL_CELL_ERROR}:
        return None
    if cell.ctype == xlrd.XL_CELL_DATE:
        return xlrd.xldate.xldate_as_datetime(cell.value, datemode)
    if cell.ctype == xlrd.XL_CELL_BOOLEAN:
        return bool(cell.value)
    return cell.value


def _trim_leading_blanks(rows: list[tuple]) -> list[tuple]:
    """Drop empty rows above and empty columns left of the used range."""
    while rows and all(value is None for value in rows[0]):
        rows = rows[1:]
    filled_columns = [index for row in rows for index, value in enumerate(row) if value is not None]
    if not filled_columns:
        return []
    first_column = min(filled_columns)
    return [row[first_column:] for row in rows]


def _read_xls_sheets(content_bytes: bytes) -> list[SheetTable]:
    book = xlrd.open_workbook(file_contents=content_bytes)
    try:
        tables: list[SheetTable] = []
        for sheet in book.sheets():
            rows = [
                tuple(_xls_cell_value(cell, book.datemode) for cell in sheet.row(index))
                for index in range(sheet.nrows)
            ]
            tables.append(SheetTable(name=sheet.name, rows=_trim_leading_blanks(rows)))
        return tables
    finally:
        book.release_resources()


def read_workbook(content_bytes: bytes) -> list[SheetTable]:
    """Read every worksheet in workbook order as raw value rows."""
    try:
        if content_bytes.startswith(OLE2_SIGNATURE):
            return _read_xls_sheets(content_bytes)
        return _read_xlsx_sheets(content_bytes)
    except Exception as exc:  # noqa: BLE001
        raise ExtractionFailed(f"Spreadsheet could not be parsed: {exc}") from exc


def _header_label(value: object, index: int) -> str:
    if value is None or value == "":
        return f"column_{index + 1}"
    return str(_json_cell_value(value))


def sheet_rows(table: SheetTable, *, include_row_numbers: bool = False) -> list[dict]:
    """Map each data row to its header cells; the first row is the header."""
    if not table.rows:
        return []

    header = [_header_label(value, index) for index, value in enumerate(table.rows[0])]
    records: list[dict] = []
    for raw_row in table.rows[1:]:
        record: dict[str, object] = {}
        for index, value in enumerate(raw_row[: len(header)]):
            if value is None:
                continue
            # duplicate header labels overwrite earlier columns
            record[header[index]] = _json_cell_value(value)
        if record:
            records.append(record)

    if include_row_numbers:
        records = [{"row_number": index + 2, **record} for index, record in enumerate(records)]
    return records


def extract_spreadsheet(
    content_bytes: bytes,
    *,
    include_sheet_name: bool = True,
    include_row_numbers: bool = False,
    separate_sheets: bool = False,
) -> ExtractionResult:
    tables = read_workbook(content_bytes)
    results: list[dict] = []

    for table in tables:
        rows = sheet_rows(table, include_row_numbers=include_row_numbers)
        if include_sheet_name:
            results.append({"sheet_name": table.name, "rows": rows})
        elif separate_sheets:
            results.append({"rows": rows})
        else:
            results.extend(rows)

    logger.debug("Read %d sheet(s) from workbook", len(tables))
    if separate_sheets:
        return Many(results)
    return Single({"sheets": results})


# --- CSV -------------------------------------------------------------------


def extract_csv(content_bytes: bytes, *, include_row_numbers: bool = False) -> Single:
    """Split on newlines and commas; quoted fields containing commas are not supported."""
    lines = _decode_text(content_bytes).split("\n")
    headers = [header.strip() for header in lines[0].split(",")]
    data: list[dict] = []

    for line_index in range(1, len(lines)):
        line = lines[line_index]
        if not line.strip():
            continue

        values = line.split(",")
        row: dict[str, object] = {}
        if include_row_numbers:
            row["row_number"] = line_index + 1
        for position, header in enumerate(headers):
            row[header] = values[position].strip() if position < len(values) else ""
        data.append(row)

    return Single({"data": data})


# --- Image -----------------------------------------------------------------


class OcrEngine:
    """Scoped OCR session: the image handle is released on every exit path."""

    def __init__(self, content_bytes: bytes, *, language: str | None = None) -> None:
        self._content_bytes = content_bytes
        self.language = language or get_ocr_language()
        self._image: Image.Image | None = None

    def __enter__(self) -> "OcrEngine":
        self._image = Image.open(io.BytesIO(self._content_bytes))
        return self

    def __exit__(self, exc_type, exc, traceback) -> bool:
        if self._image is not None:
            self._image.close()
            self._image = None
        return False

    def recognize(self) -> str:
        if self._image is None:
            raise RuntimeError("OCR engine used outside of its context.")
        return pytesseract.image_to_string(self._image, lang=self.language)


def extract_image(content_bytes: bytes) -> Single:
    try:
        with OcrEngine(content_bytes) as engine:
            text = engine.recognize()
    except Exception as exc:  # noqa: BLE001
        raise ExtractionFailed(f"OCR failed: {exc}") from exc

    return Single({"text": text, "extracted_by": "OCR"})


# --- JSON / text -----------------------------------------------------------


def extract_json(content_bytes: bytes) -> ExtractionResult:
    text = _decode_text(content_bytes)
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise DecodeError(f"Invalid JSON payload: {exc}") from exc

    if isinstance(payload, list):
        return Many([_as_record(value) for value in payload])
    return Single(_as_record(payload))


def extract_text(content_bytes: bytes) -> Single:
    return Single({"text": _decode_text(content_bytes)})
