# backoffice/utils/csv_io.py
from __future__ import annotations

import csv
import io
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional, Sequence

from fastapi.responses import StreamingResponse


def _cell(value: Any) -> Any:
    if isinstance(value, Decimal):
        return f"{value:.2f}"
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if value is None:
        return ""
    return value


def dicts_to_csv_stream(
    rows: Iterable[Dict[str, Any]],
    field_order: Optional[Sequence[str]] = None,
    filename: Optional[str] = None,
) -> StreamingResponse:
    """
    Stream a CSV built from dict rows.
    Headers come from field_order, else from the first row; keys outside the
    headers are dropped. Decimals are written with two places, dates as ISO.
    """
    buf = io.StringIO()
    rows_list = list(rows)
    headers = list(field_order) if field_order else (list(rows_list[0].keys()) if rows_list else [])
    if headers:
        writer = csv.DictWriter(buf, fieldnames=headers, extrasaction="ignore")
        writer.writeheader()
        for r in rows_list:
            writer.writerow({k: _cell(r.get(k)) for k in headers})
    buf.seek(0)
    response_headers = {"Content-Type": "text/csv; charset=utf-8"}
    if filename:
        response_headers["Content-Disposition"] = f'attachment; filename="{filename}"'
    return StreamingResponse(buf, headers=response_headers)
