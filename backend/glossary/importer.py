"""
Glossary Import / Export

Turns spreadsheet, CSV and JSON uploads into import candidates and
renders the glossary back into the same formats.
"""
import csv
import json
from io import BytesIO, StringIO
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from loguru import logger
from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font, PatternFill

from config import settings
from .errors import InvalidInputError
from .models import CandidateTerm, Term

# A header row must contain one of these (searched in the first rows)
HEADER_KEYWORDS = (
    "english", "malay", "chinese", "en", "bm", "cn", "zh",
    "source", "target", "bahasa", "melayu", "mandarin",
    "中文", "英文", "马来文", "chn", "eng",
)

HEADER_ALIASES = {
    "en": "source",
    "eng": "source",
    "english": "source",
    "source": "source",
    "英文": "source",
    "bm": "target_a",
    "my": "target_a",
    "ms": "target_a",
    "malay": "target_a",
    "bahasa": "target_a",
    "melayu": "target_a",
    "bahasa malaysia": "target_a",
    "马来文": "target_a",
    "cn": "target_b",
    "zh": "target_b",
    "chn": "target_b",
    "chinese": "target_b",
    "mandarin": "target_b",
    "中文": "target_b",
    "category": "category",
    "remark": "remark",
    "remarks": "remark",
    "note": "remark",
    "notes": "remark",
}

HEADER_SEARCH_ROWS = 5
LANGUAGE_FIELDS = ("source", "target_a", "target_b")

EXPORT_HEADERS = ["English", "Bahasa Malaysia", "中文", "Category", "Status", "Remark"]


def normalize_header(header: Any) -> Optional[str]:
    """Map a spreadsheet header cell to a candidate field name"""
    if not isinstance(header, str):
        return None
    h = header.strip().lower()
    if h in HEADER_ALIASES:
        return HEADER_ALIASES[h]
    # Partial matches, e.g. "Chinese (Simplified)"
    if "english" in h or "英文" in h:
        return "source"
    if "malay" in h or "bahasa" in h or "melayu" in h:
        return "target_a"
    if "chinese" in h or "中文" in h or "mandarin" in h:
        return "target_b"
    return None


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def _is_header_row(row: Sequence[Any]) -> bool:
    for cell in row:
        if isinstance(cell, str):
            text = cell.strip().lower()
            if any(keyword in text for keyword in HEADER_KEYWORDS):
                return True
    return False


def _check_row_limit(count: int) -> None:
    if count > settings.MAX_IMPORT_ROWS:
        raise InvalidInputError(
            f"Import has {count} rows, the limit is {settings.MAX_IMPORT_ROWS}"
        )


def parse_rows(rows: Sequence[Sequence[Any]]) -> List[CandidateTerm]:
    """
    Build candidates from a table of cells.

    An optional leading "Link: ..." row is skipped, the header row is
    searched within the first rows, and rows without any language text
    are dropped. Rows that only carry translations are kept so the
    duplicate check can report them as invalid.
    """
    rows = [list(row) for row in rows if row is not None]
    if not rows:
        return []

    start = 0
    first = rows[0]
    if first and isinstance(first[0], str) and first[0].startswith("Link:"):
        start = 1

    header_index = start
    for i in range(start, min(start + HEADER_SEARCH_ROWS, len(rows))):
        if _is_header_row(rows[i]):
            header_index = i
            break

    if header_index >= len(rows):
        return []

    fields = [normalize_header(h) for h in rows[header_index]]
    if not any(f in LANGUAGE_FIELDS for f in fields):
        raise InvalidInputError("No language columns found in import header")

    _check_row_limit(len(rows) - header_index - 1)

    candidates = []
    for row in rows[header_index + 1:]:
        values: Dict[str, str] = {}
        for field, cell in zip(fields, row):
            if field and field not in values:
                text = _cell_text(cell)
                if text:
                    values[field] = text

        if not any(values.get(f) for f in LANGUAGE_FIELDS):
            continue
        candidates.append(CandidateTerm.from_dict(values))

    return candidates


def parse_csv(text: str) -> List[CandidateTerm]:
    """Parse CSV content with a header row"""
    text = text.lstrip("\ufeff")
    reader = csv.reader(StringIO(text))
    return parse_rows(list(reader))


def parse_json(data: Any) -> List[CandidateTerm]:
    """
    Parse JSON import data.

    Accepts a list of term objects or ``{"entries": [...]}``; a string is
    decoded first.
    """
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as e:
            raise InvalidInputError(f"Invalid JSON: {e}")

    if isinstance(data, dict):
        data = data.get("entries", data.get("terms"))
    if not isinstance(data, list):
        raise InvalidInputError("JSON import must be a list of terms or {'entries': [...]}")

    _check_row_limit(len(data))
    candidates = []
    for item in data:
        if not isinstance(item, dict):
            raise InvalidInputError(f"JSON import entries must be objects, got {type(item).__name__}")
        # Imported terms always enter the review workflow as drafts
        item = {k: v for k, v in item.items() if k != "status"}
        candidate = CandidateTerm.from_dict(item)
        if any(getattr(candidate, f) for f in LANGUAGE_FIELDS):
            candidates.append(candidate)
    return candidates


def parse_xlsx(content: bytes) -> List[CandidateTerm]:
    """Parse every sheet of an Excel workbook"""
    try:
        workbook = load_workbook(BytesIO(content), read_only=True, data_only=True)
    except Exception as e:
        raise InvalidInputError(f"Could not read Excel file: {e}")

    candidates: List[CandidateTerm] = []
    glossary_sheets = 0
    try:
        for sheet in workbook.worksheets:
            rows = [list(r) for r in sheet.iter_rows(values_only=True)]
            if not rows:
                continue
            _check_row_limit(len(candidates) + len(rows) - 1)
            try:
                sheet_terms = parse_rows(rows)
            except InvalidInputError as e:
                # Workbooks often carry extra sheets (notes, instructions)
                logger.warning(f"Skipping sheet {sheet.title!r}: {e}")
                continue
            glossary_sheets += 1
            logger.debug(f"Sheet {sheet.title!r}: {len(sheet_terms)} terms")
            candidates.extend(sheet_terms)
            _check_row_limit(len(candidates))
    finally:
        workbook.close()

    if not glossary_sheets:
        raise InvalidInputError("No sheet with language columns found in workbook")
    return candidates


def _decode_upload(content: bytes) -> str:
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise InvalidInputError(f"File is not valid UTF-8: {e}")


def parse_file(filename: str, content: bytes) -> List[CandidateTerm]:
    """Dispatch an uploaded file to the parser for its extension"""
    suffix = Path(filename or "").suffix.lower()
    if suffix in (".xlsx", ".xlsm"):
        candidates = parse_xlsx(content)
    elif suffix == ".csv":
        candidates = parse_csv(_decode_upload(content))
    elif suffix == ".json":
        candidates = parse_json(_decode_upload(content))
    else:
        raise InvalidInputError(f"Unsupported import file type: {suffix or filename}")

    logger.info(f"Parsed {len(candidates)} glossary terms from {filename}")
    return candidates


def _export_row(term: Term) -> List[str]:
    return [
        term.source,
        term.target_a,
        term.target_b,
        term.category,
        term.status.value if hasattr(term.status, "value") else str(term.status),
        term.remark or "",
    ]


def export_json(terms: Iterable[Term]) -> Dict[str, Any]:
    """Export glossary as JSON"""
    entries = [t.to_dict() for t in terms]
    return {"entries": entries, "total": len(entries)}


def export_csv(terms: Iterable[Term]) -> str:
    """Export glossary as CSV"""
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(EXPORT_HEADERS)
    for term in terms:
        writer.writerow(_export_row(term))
    return output.getvalue()


def export_xlsx(terms: Iterable[Term]) -> bytes:
    """Export glossary as an Excel workbook with a grey header row"""
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Glossary"
    sheet.append(EXPORT_HEADERS)

    header_fill = PatternFill(start_color="D9D9D9", end_color="D9D9D9", fill_type="solid")
    for cell in sheet[1]:
        cell.fill = header_fill
        cell.font = Font(bold=True)

    for term in terms:
        sheet.append(_export_row(term))

    for column in ("A", "B", "C"):
        sheet.column_dimensions[column].width = 40

    output = BytesIO()
    workbook.save(output)
    return output.getvalue()
