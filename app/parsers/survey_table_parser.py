"""
app/parsers/survey_table_parser.py

Tolerant parsing of uploaded survey tables into row dictionaries.

CSV handling is deliberately forgiving: blank lines are dropped, the
delimiter is sniffed from the header line (tab or comma), and data rows
with the wrong number of cells are padded or truncated instead of rejected.
Only structurally empty input raises ``SurveyParseError``.
"""

from __future__ import annotations

import csv
import io
import json
import logging
import math
import re
from datetime import date, datetime
from pathlib import PurePath
from typing import Any, Literal, Sequence

import pandas as pd

from app.domain.survey import CellValue, SurveyRow

logger = logging.getLogger(__name__)

TableHint = Literal["csv", "json"]

_NUMERIC_CELL = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")
_UNNAMED_EXCEL_COLUMN = re.compile(r"^Unnamed: \d+$")

CSV_EXTENSIONS = frozenset({".csv", ".tsv", ".txt"})
JSON_EXTENSIONS = frozenset({".json"})
EXCEL_EXTENSIONS = frozenset({".xlsx", ".xls"})
SUPPORTED_EXTENSIONS = CSV_EXTENSIONS | JSON_EXTENSIONS | EXCEL_EXTENSIONS


class SurveyParseError(ValueError):
    """
    Raised when an uploaded table cannot be read at all.
    """


def parse_survey_table(raw_text: str, hint: TableHint) -> list[SurveyRow]:
    """
    Parse survey text into rows using the given format hint.
    """

    if hint == "json":
        return _parse_json_table(raw_text)
    if hint == "csv":
        return _parse_csv_table(raw_text)
    raise SurveyParseError(f"Unsupported table format hint: {hint!r}.")


def parse_survey_upload(data: bytes, filename: str) -> list[SurveyRow]:
    """
    Parse an uploaded file, choosing the reader from its extension.

    JSON uploads that fail to decode are retried as CSV. Excel workbooks are
    read from their first sheet.
    """

    extension = PurePath(filename or "").suffix.lower()
    if extension in EXCEL_EXTENSIONS:
        return _parse_excel_table(data)

    text = _decode_upload(data)
    if extension in JSON_EXTENSIONS:
        try:
            return parse_survey_table(text, "json")
        except SurveyParseError as exc:
            logger.warning("JSON parse failed for %r, retrying as CSV: %s", filename, exc)
            return parse_survey_table(text, "csv")
    if extension in CSV_EXTENSIONS or not extension:
        return parse_survey_table(text, "csv")

    raise SurveyParseError(
        f"Unsupported file type {extension!r}. "
        f"Allowed extensions: {sorted(SUPPORTED_EXTENSIONS)}."
    )


def infer_cell_value(raw: str) -> CellValue:
    """
    Type one CSV cell: empty -> None, numeric -> int/float, true/false -> bool.

    Any other cell is returned as the raw text, surrounding whitespace
    included.
    """

    value = raw.strip()
    if value == "":
        return None
    if _NUMERIC_CELL.match(value):
        if "." in value or "e" in value or "E" in value:
            return float(value)
        return int(value)
    lowered = value.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    return raw


def rows_to_csv(rows: Sequence[SurveyRow], delimiter: str = ",") -> str:
    """
    Serialize rows back into CSV text with a header line.
    """

    headers: list[str] = []
    seen: set[str] = set()
    for row in rows:
        for key in row:
            if key not in seen:
                seen.add(key)
                headers.append(key)

    buffer = io.StringIO()
    writer = csv.writer(buffer, delimiter=delimiter, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow([_format_csv_cell(row.get(header)) for header in headers])
    return buffer.getvalue()


# ---------------------------------------------------------------------------
# Internals
# ---------------------------------------------------------------------------


def _parse_json_table(raw_text: str) -> list[SurveyRow]:
    try:
        parsed = json.loads(raw_text)
    except (json.JSONDecodeError, TypeError) as exc:
        raise SurveyParseError(f"Invalid JSON: {exc}") from exc

    items = parsed if isinstance(parsed, list) else [parsed]
    rows: list[SurveyRow] = []
    for item in items:
        if isinstance(item, dict):
            rows.append({str(key): value for key, value in item.items()})
        else:
            rows.append({"value": item})
    return rows


def _parse_csv_table(raw_text: str) -> list[SurveyRow]:
    normalized = raw_text.replace("\r\n", "\n").replace("\r", "\n")
    lines = [line for line in normalized.split("\n") if line.strip()]
    if len(lines) < 2:
        raise SurveyParseError("CSV must contain a header row and at least one data row.")

    delimiter = "\t" if "\t" in lines[0] else ","
    try:
        records = list(csv.reader((line + "\n" for line in lines), delimiter=delimiter))
    except csv.Error as exc:
        raise SurveyParseError(f"Invalid CSV format: {exc}") from exc

    if not records:
        raise SurveyParseError("CSV header row is missing.")

    headers = [
        cell.strip() or f"column{index + 1}"
        for index, cell in enumerate(records[0])
    ]
    width = len(headers)

    rows: list[SurveyRow] = []
    ragged = 0
    for record in records[1:]:
        if len(record) != width:
            ragged += 1
            if len(record) < width:
                record = record + [""] * (width - len(record))
            else:
                record = record[:width]
        rows.append(
            {header: infer_cell_value(cell) for header, cell in zip(headers, record)}
        )

    if ragged:
        logger.warning(
            "CSV rows with mismatched column counts were padded or truncated count=%d expected_columns=%d",
            ragged,
            width,
        )
    return rows


def _parse_excel_table(data: bytes) -> list[SurveyRow]:
    try:
        frame = pd.read_excel(io.BytesIO(data), sheet_name=0, dtype=object)
    except Exception as exc:  # noqa: BLE001
        raise SurveyParseError(f"Invalid Excel workbook: {exc}") from exc

    headers = [
        f"column{index + 1}" if _UNNAMED_EXCEL_COLUMN.match(str(name)) else str(name).strip()
        for index, name in enumerate(frame.columns)
    ]
    rows: list[SurveyRow] = []
    for values in frame.itertuples(index=False, name=None):
        row = {header: _excel_cell(value) for header, value in zip(headers, values)}
        if all(value is None for value in row.values()):
            continue
        rows.append(row)
    return rows


def _excel_cell(value: Any) -> CellValue:
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    if value is pd.NaT:
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (bool, int, float, str)):
        return value
    if hasattr(value, "item"):
        return value.item()
    return str(value)


def _decode_upload(data: bytes) -> str:
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        logger.warning("Upload is not valid UTF-8; decoding as latin-1")
        return data.decode("latin-1")


def _format_csv_cell(value: CellValue) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
