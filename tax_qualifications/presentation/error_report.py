"""Error reports and upload template for bulk uploads."""
from __future__ import annotations

import csv
import html
import io
import json
from typing import Any, Iterable, Sequence

from tax_qualifications.domain.models import FACTOR_KEYS, ProcessedRecord, ValidationError
from tax_qualifications.domain.normalization import EXPECTED_COLUMNS
from tax_qualifications.domain.results import BulkUploadResult

ERROR_COLUMNS = ["Fila", "Campo", "Error", "Valor"]

TEMPLATE_EXAMPLE = {
    "instrumento": "Acción ABC",
    "mercado": "BVC",
    "periodo": "2024-Q1",
    "tipo_calificacion": "Dividendos",
    **{key: "0.1" for key in FACTOR_KEYS[:8]},
    **{key: "0.05" for key in FACTOR_KEYS[8:]},
    "monto": "15000",
    "es_oficial": "false",
}


def _format_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)


def errors_to_rows(errors: Iterable[ValidationError]) -> list[dict[str, str]]:
    return [
        {
            "Fila": str(error.row),
            "Campo": error.field,
            "Error": error.message,
            "Valor": _format_value(error.value),
        }
        for error in errors
    ]


def render_errors_csv(result: BulkUploadResult) -> bytes:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=ERROR_COLUMNS)
    writer.writeheader()
    writer.writerows(errors_to_rows(result.iter_all_errors()))
    return buffer.getvalue().encode("utf-8")


def render_html(result: BulkUploadResult) -> str:
    rows = errors_to_rows(result.iter_all_errors())
    if not rows:
        return "<p>Sin errores de validación.</p>"
    header = "".join(f"<th>{column}</th>" for column in ERROR_COLUMNS)
    body = "".join(
        "<tr>" + "".join(f"<td>{html.escape(row[column])}</td>" for column in ERROR_COLUMNS) + "</tr>"
        for row in rows
    )
    return f"<table><thead><tr>{header}</tr></thead><tbody>{body}</tbody></table>"


def records_to_rows(records: Sequence[ProcessedRecord]) -> list[dict[str, object]]:
    rows: list[dict[str, object]] = []
    for record in records:
        data = record.data
        rows.append(
            {
                "fila": record.row_number,
                "estado": record.status.value,
                "id": data.id if data else record.existing_id or "",
                "instrumento": data.instrument if data else "",
                "mercado": data.market if data else "",
                "periodo": data.period if data else "",
                "monto": data.amount if data else None,
                "errores": len(record.errors),
            }
        )
    return rows


def generate_template_csv() -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=list(EXPECTED_COLUMNS), lineterminator="\n")
    writer.writeheader()
    writer.writerow(TEMPLATE_EXAMPLE)
    return buffer.getvalue()
