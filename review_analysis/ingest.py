"""
Decode an uploaded CSV into positional rows.
Column layout: 0 = id (ignored), 1 = product name, 2 = review text, 3 = reviewer (optional).
"""
import csv
import io

from .exceptions import IngestionError

PRODUCT_COL = 1
TEXT_COL = 2
REVIEWER_COL = 3
ANONYMOUS = "Anonymous"


def decode_rows(data: bytes) -> list[list[str]]:
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise IngestionError(f"Upload is not valid UTF-8 text: {e}") from e
    try:
        return [row for row in csv.reader(io.StringIO(text, newline=""))]
    except csv.Error as e:
        raise IngestionError(f"Upload is not valid CSV: {e}") from e
