import csv
import io
import json

import pytest
from openpyxl import load_workbook

from batchops.codecs import ArtifactCache, decode_rows, encode_rows, get_nested_value, to_xlsx
from batchops.schemas import ExportFormat

HEADERS = ["Name", "Email", "Workshop"]


def _rows(count):
    return [
        {"Name": f"User {i}", "Email": f"user{i}@example.com", "Workshop": f"Intro, part {i}"}
        for i in range(count)
    ]


@pytest.mark.parametrize("count", [0, 1, 7, 120])
def test_csv_parses_back_to_same_row_count_and_header(count):
    content = encode_rows(_rows(count), HEADERS, ExportFormat.CSV)

    reader = csv.reader(io.StringIO(content.decode("utf-8")))
    parsed = list(reader)
    assert parsed[0] == HEADERS
    assert len(parsed) - 1 == count


def test_csv_quotes_commas_and_quotes():
    rows = [{"Name": 'Ann "The Coder" Lee', "Email": "ann@example.com", "Workshop": "A, B"}]
    content = encode_rows(rows, HEADERS, ExportFormat.CSV)
    parsed = list(csv.DictReader(io.StringIO(content.decode("utf-8"))))
    assert parsed == [{"Name": 'Ann "The Coder" Lee', "Email": "ann@example.com", "Workshop": "A, B"}]


def test_json_is_a_list_of_labelled_objects():
    content = encode_rows(_rows(2), HEADERS, ExportFormat.JSON)
    assert json.loads(content) == _rows(2)


def test_excel_produces_a_real_workbook():
    content = encode_rows(_rows(3), HEADERS, ExportFormat.EXCEL)
    sheet = load_workbook(io.BytesIO(content)).active
    values = [list(row) for row in sheet.iter_rows(values_only=True)]
    assert values[0] == HEADERS
    assert len(values) == 4
    assert values[1] == ["User 0", "user0@example.com", "Intro, part 0"]


def test_decode_csv_strips_and_skips_blank_lines():
    content = "title , instructor\n Python ,u1\n\n,\nR,u2\n"
    assert decode_rows(content, "csv") == [
        {"title": "Python", "instructor": "u1"},
        {"title": "R", "instructor": "u2"},
    ]


def test_decode_csv_handles_bom_and_short_rows():
    content = "\ufefftitle,instructor,max_participants\r\nPython,u1\r\n".encode("utf-8")
    assert decode_rows(content, "csv") == [{"title": "Python", "instructor": "u1", "max_participants": ""}]


def test_decode_excel():
    content = to_xlsx([{"title": "Python", "max_participants": 20}], ["title", "max_participants"])
    assert decode_rows(content, "excel") == [{"title": "Python", "max_participants": 20}]


def test_decode_unknown_format():
    with pytest.raises(ValueError):
        decode_rows("a,b", "parquet")


def test_get_nested_value():
    row = {"user": {"email": "a@example.com"}, "workshop": None}
    assert get_nested_value(row, "user.email") == "a@example.com"
    assert get_nested_value(row, "workshop.title") is None
    assert get_nested_value(row, "user.missing") is None


def test_artifact_cache_round_trip():
    cache = ArtifactCache()
    url = cache.put("export.csv", b"a,b\n")
    assert url.startswith("memory://exports/") and url.endswith("/export.csv")
    assert cache.fetch(url) == b"a,b\n"
    assert len(cache) == 1
    assert cache.discard(url) is True
    assert cache.fetch(url) is None
