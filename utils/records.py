"""Record loader for ``reg_list.json``.

The document is columnar::

    {"columns": ["分類", "No.", "法令名", ...],
     "data":    [["A", "1", "電波法", ...], ...]}

``load_records`` zips every row against the header list into a dict.  The
source data labels the sequence column ``"No."``; it is exposed as ``"No"``.
"""

import logging
from typing import Any

from pydantic import BaseModel, ValidationError

from utils.datasets import MalformedDatasetError
from utils.links import clause_shapes

logger = logging.getLogger(__name__)

Record = dict[str, Any]


class RawRecordDocument(BaseModel):
    """Schema of ``reg_list.json``."""
    columns: list[str]
    data: list[list[Any]]


def rename_columns(columns: list[str]) -> list[str]:
    """Return ``columns`` with the first ``"No."`` header renamed to ``"No"``."""
    renamed = list(columns)
    if "No." in renamed:
        renamed[renamed.index("No.")] = "No"
    return renamed


def load_records(raw_doc: Any, url: str = "reg_list.json") -> list[Record]:
    """Build records from the raw columnar document.

    Args:
        raw_doc: Decoded JSON of ``reg_list.json``.
        url: Where the document came from, for error messages.

    Returns:
        One dict per data row, keyed by every (renamed) header.

    Raises:
        MalformedDatasetError: The document does not match the schema or a
            row's length differs from the header count.
    """
    try:
        doc = RawRecordDocument.model_validate(raw_doc)
    except ValidationError as exc:
        raise MalformedDatasetError(url, str(exc)) from exc

    columns = rename_columns(doc.columns)
    records: list[Record] = []
    for row_no, row in enumerate(doc.data):
        if len(row) != len(columns):
            raise MalformedDatasetError(
                url,
                f"row {row_no} has {len(row)} values but there are "
                f"{len(columns)} columns",
            )
        records.append(dict(zip(columns, row)))
    return records


def count_mixed_clause_shapes(records: list[Record]) -> int:
    """Number of records carrying more than one clause-location shape."""
    return sum(1 for r in records if len(clause_shapes(r)) > 1)
