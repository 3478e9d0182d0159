import csv
import json
from io import StringIO

import pytest

from config import settings
from glossary import InvalidInputError, Term, TermStatus
from glossary.importer import (
    EXPORT_HEADERS,
    export_csv,
    export_json,
    export_xlsx,
    normalize_header,
    parse_csv,
    parse_file,
    parse_json,
    parse_rows,
    parse_xlsx,
)


@pytest.fixture
def terms():
    return [
        Term(id="t1", source="Bank", target_a="Bank", target_b="银行", category="Finance"),
        Term(
            id="t2",
            source="Loan",
            target_a="Pinjaman",
            target_b="贷款",
            category="Product",
            status=TermStatus.APPROVED,
            remark="core term",
        ),
    ]


@pytest.mark.parametrize("header,field", [
    ("English", "source"),
    (" EN ", "source"),
    ("Bahasa Malaysia", "target_a"),
    ("Malay (BM)", "target_a"),
    ("中文", "target_b"),
    ("Chinese (Simplified)", "target_b"),
    ("Notes", "remark"),
    ("Status", None),
    (42, None),
])
def test_normalize_header(header, field):
    assert normalize_header(header) == field


def test_parse_rows_skips_link_row_and_finds_header():
    rows = [
        ["Link: https://example.com/sheet"],
        ["Banking glossary"],
        ["EN", "BM", "CN", "Category"],
        ["Account", "Akaun", "账户", "Finance"],
        [None, None, None, None],
        ["Interest", "Faedah", "利息", ""],
    ]

    candidates = parse_rows(rows)

    assert [c.source for c in candidates] == ["Account", "Interest"]
    assert candidates[0].target_a == "Akaun"
    assert candidates[0].category == "Finance"
    assert candidates[1].category == ""


def test_parse_rows_keeps_rows_without_source():
    rows = [["English", "Malay"], ["", "Pinjaman"], ["Bank", ""]]
    candidates = parse_rows(rows)
    assert [(c.source, c.target_a) for c in candidates] == [("", "Pinjaman"), ("Bank", "")]


def test_parse_rows_requires_language_columns():
    with pytest.raises(InvalidInputError):
        parse_rows([["Category", "Remark"], ["Finance", "x"]])


def test_parse_rows_converts_numeric_cells():
    candidates = parse_rows([["English", "Chinese"], [401.0, "401"]])
    assert candidates[0].source == "401"


def test_parse_csv_strips_bom():
    text = "\ufeffEnglish,Bahasa Malaysia,中文\nBank,Bank,银行\n"
    candidates = parse_csv(text)
    assert len(candidates) == 1
    assert candidates[0].target_b == "银行"


def test_parse_json_accepts_list_and_entries():
    items = [{"en": "Bank", "my": "Bank", "cn": "银行"}, {"source": "Loan", "status": "approved"}]

    from_list = parse_json(items)
    from_entries = parse_json(json.dumps({"entries": items}))

    assert from_list == from_entries
    assert [c.source for c in from_list] == ["Bank", "Loan"]
    assert from_list[0].target_b == "银行"
    # Imports always start as drafts
    assert from_list[1].status is TermStatus.DRAFT


def test_parse_json_drops_entries_without_language_text():
    candidates = parse_json([{"category": "Finance"}, {"zh": "银行"}])
    assert len(candidates) == 1
    assert candidates[0].source == ""


@pytest.mark.parametrize("data", ["{not json", {"items": []}, 12, [1, 2]])
def test_parse_json_rejects_bad_shapes(data):
    with pytest.raises(InvalidInputError):
        parse_json(data)


def test_row_limit(monkeypatch):
    monkeypatch.setattr(settings, "MAX_IMPORT_ROWS", 2)
    rows = [["English"], ["a"], ["b"], ["c"]]
    with pytest.raises(InvalidInputError):
        parse_rows(rows)
    with pytest.raises(InvalidInputError):
        parse_json([{"en": "a"}, {"en": "b"}, {"en": "c"}])


def test_xlsx_export_can_be_imported_again(terms):
    content = export_xlsx(terms)

    candidates = parse_xlsx(content)

    assert [(c.source, c.target_a, c.target_b) for c in candidates] == [
        ("Bank", "Bank", "银行"),
        ("Loan", "Pinjaman", "贷款"),
    ]
    assert candidates[1].category == "Product"
    assert candidates[1].remark == "core term"
    assert candidates[1].status is TermStatus.DRAFT


def test_unreadable_xlsx_is_invalid_input():
    with pytest.raises(InvalidInputError):
        parse_xlsx(b"not a workbook")


def test_parse_file_dispatches_on_extension():
    csv_terms = parse_file("terms.CSV", "English\nBank\n".encode("utf-8"))
    json_terms = parse_file("terms.json", b'[{"en": "Bank"}]')

    assert csv_terms == json_terms

    with pytest.raises(InvalidInputError):
        parse_file("terms.txt", b"Bank")


def test_export_csv(terms):
    rows = list(csv.reader(StringIO(export_csv(terms))))
    assert rows[0] == EXPORT_HEADERS
    assert rows[2] == ["Loan", "Pinjaman", "贷款", "Product", "approved", "core term"]


def test_export_json(terms):
    data = export_json(terms)
    assert data["total"] == 2
    assert data["entries"][0]["source"] == "Bank"
    assert data["entries"][1]["status"] == "approved"


def test_non_utf8_upload_is_invalid_input():
    with pytest.raises(InvalidInputError):
        parse_file("terms.csv", b"English,Malay\n\xff\xfeBank,Bank\n")
    with pytest.raises(InvalidInputError):
        parse_file("terms.json", b'[{"en": "\xff"}]')
