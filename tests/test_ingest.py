import pytest

from review_analysis.exceptions import IngestionError
from review_analysis.ingest import decode_rows


def test_decode_rows_keeps_positional_fields():
    data = b'id,product,review,reviewer\n1,Widget,"Great, really great",alice\n2,Gadget,Meh\n'

    rows = decode_rows(data)

    assert rows == [
        ["id", "product", "review", "reviewer"],
        ["1", "Widget", "Great, really great", "alice"],
        ["2", "Gadget", "Meh"],
    ]


def test_decode_rows_strips_utf8_bom():
    rows = decode_rows("\ufeffid,product,review\n1,Café,Très bien\n".encode("utf-8"))

    assert rows[0][0] == "id"
    assert rows[1][1] == "Café"


def test_decode_rows_handles_multiline_quoted_text():
    rows = decode_rows(b'id,product,review\n1,Widget,"line one\nline two"\n')

    assert rows[1][2] == "line one\nline two"


def test_decode_rows_rejects_binary():
    with pytest.raises(IngestionError):
        decode_rows(b"\xff\xfe\x00\x01PK\x03\x04")
