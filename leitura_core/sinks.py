from __future__ import annotations

from io import BytesIO
from typing import Any, Dict, List, Sequence

import pandas as pd
from fpdf import FPDF

CSV_SEPARATOR = ";"

MEDIA_TYPES = {
    "csv": "text/csv",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "pdf": "application/pdf",
}


def _frame(records: List[Dict[str, Any]], headers: Sequence[str]) -> pd.DataFrame:
    return pd.DataFrame.from_records(records, columns=list(headers))


def to_csv_bytes(records: List[Dict[str, Any]], headers: Sequence[str]) -> bytes:
    # ';' because percentages already use ',' as decimal separator.
    return _frame(records, headers).to_csv(index=False, sep=CSV_SEPARATOR).encode("utf-8-sig")


def to_xlsx_bytes(records: List[Dict[str, Any]], headers: Sequence[str], sheet_name: str = "Relatório") -> bytes:
    buffer = BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        _frame(records, headers).to_excel(writer, index=False, sheet_name=sheet_name[:31])
    return buffer.getvalue()


def _pdf_safe_text(text: Any) -> str:
    if text is None:
        return ""
    return str(text).encode("latin-1", "replace").decode("latin-1")


def to_pdf_bytes(records: List[Dict[str, Any]], headers: Sequence[str], title: str = "Relatório SAL") -> bytes:
    pdf = FPDF(orientation="landscape")
    pdf.set_auto_page_break(auto=True, margin=12)
    pdf.add_page()
    pdf.set_font("Helvetica", "B", 12)
    pdf.cell(0, 8, _pdf_safe_text(title), new_x="LMARGIN", new_y="NEXT")

    width = (pdf.w - pdf.l_margin - pdf.r_margin) / max(1, len(headers))

    def header_row() -> None:
        pdf.set_font("Helvetica", "B", 7)
        pdf.set_fill_color(0, 0, 0)
        pdf.set_text_color(255, 255, 255)
        for label in headers:
            pdf.cell(width, 6, _pdf_safe_text(label), border=1, align="C", fill=True)
        pdf.ln()
        pdf.set_text_color(0, 0, 0)
        pdf.set_font("Helvetica", "", 7)

    header_row()
    for record in records:
        if pdf.will_page_break(5):
            pdf.add_page()
            header_row()
        for label in headers:
            pdf.cell(width, 5, _pdf_safe_text(record.get(label, ""))[:40], border=1, align="C")
        pdf.ln()
    return bytes(pdf.output())


def render(fmt: str, records: List[Dict[str, Any]], headers: Sequence[str], *, title: str) -> bytes:
    fmt = fmt.lower()
    if fmt == "csv":
        return to_csv_bytes(records, headers)
    if fmt == "xlsx":
        return to_xlsx_bytes(records, headers, sheet_name=title)
    if fmt == "pdf":
        return to_pdf_bytes(records, headers, title=title)
    raise ValueError(f"Unsupported export format: {fmt}")
