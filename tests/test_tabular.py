import io
import zipfile
from datetime import date, datetime

import pytest

from kupa.errors import StatementReadError
from kupa.tabular import cell_to_text, decode_text, read_csv_rows, read_xlsx


def test_cell_to_text_plain_values():
    assert cell_to_text(None) == ""
    assert cell_to_text(45000) == "45000"
    assert cell_to_text(11.68) == "11.68"
    assert cell_to_text(250.0) == "250"
    assert cell_to_text(True) == "TRUE"
    assert cell_to_text("  שופרסל ") == "  שופרסל "


def test_cell_to_text_dates_become_serials():
    assert cell_to_text(datetime(2023, 1, 1)) == "44927"
    assert cell_to_text(date(2024, 3, 1)) == "45352"


def test_read_csv_rows_handles_quotes_and_line_endings():
    text = '\ufeffa,"b,c","say ""hi"""\r\n1,2,3\r\n\r\n"multi\nline",x,y\r'
    rows = read_csv_rows(text)
    assert rows == [
        ["a", "b,c", 'say "hi"'],
        ["1", "2", "3"],
        ["multi\nline", "x", "y"],
    ]


def test_read_csv_rows_drops_blank_rows():
    assert read_csv_rows("a,b\n,\n\nc,d\n") == [["a", "b"], ["c", "d"]]


def test_decode_text_falls_back_to_windows_1255():
    assert decode_text("תאריך".encode("cp1255")) == "תאריך"
    assert decode_text("\ufeffתאריך".encode("utf-8")) == "תאריך"


def test_read_xlsx_reads_every_sheet(xlsx):
    data = xlsx({
        "First": [["a", 1], ["b", 2.5]],
        "Second": [["x", None, "z"]],
    })
    sheets = read_xlsx(data, "book.xlsx")
    assert [s.name for s in sheets] == ["First", "Second"]
    assert sheets[0].rows == [["a", "1"], ["b", "2.5"]]
    # Gaps keep their column position.
    assert sheets[1].rows == [["x", "", "z"]]


def test_read_xlsx_rejects_garbage():
    with pytest.raises(StatementReadError):
        read_xlsx(b"definitely not a workbook", "broken.xlsx")


def test_read_xlsx_rejects_corrupt_xml_inside_a_zip():
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        zf.writestr("[Content_Types].xml", "<Types><broken")
    with pytest.raises(StatementReadError):
        read_xlsx(buf.getvalue(), "broken.xlsx")


def test_read_xlsx_keeps_blank_rows_in_place(xlsx):
    [sheet] = read_xlsx(xlsx({"S": [["title"], [None], ["a", "b"]]}), "book.xlsx")
    assert sheet.rows == [["title", ""], ["", ""], ["a", "b"]]
