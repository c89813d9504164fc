# stringart/export.py
import json
from pathlib import Path
from typing import List, Sequence, Tuple

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import PageBreak, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

EXPORT_FORMATS = ("txt", "json", "csv")
EXPORT_MEDIA_TYPES = {
    "txt": "text/plain",
    "json": "application/json",
    "csv": "text/csv",
}


def export_connections(connections: Sequence[int], fmt: str = "txt") -> str:
    if fmt == "json":
        return json.dumps([int(c) for c in connections], indent=2)
    if fmt == "csv":
        return ",".join(str(c) for c in connections)
    if fmt == "txt":
        return "\n".join(f"{i + 1}. Peg {peg}" for i, peg in enumerate(connections))
    raise ValueError(f"Unknown export format {fmt!r}, expected one of {EXPORT_FORMATS}")


def connections_to_steps(connections: Sequence[int]) -> List[Tuple[int, int, int]]:
    """(step, from_peg, to_peg) rows, steps counted from 1."""
    return [(i, a, b) for i, (a, b) in enumerate(zip(connections, connections[1:]), start=1)]


def write_instructions_pdf(connections: Sequence[int], pdf_file: str,
                           title="String Art Threading Instructions",
                           subtitle="Peg 0 is the top-left corner, numbers increase clockwise.",
                           page_size=A4, landscape_mode=False,
                           margins_mm=(15, 15, 18, 18),
                           header_font=11, row_font=9,
                           rows_per_page=0,
                           col_widths_mm=(25, 45, 45)):
    rows = [[step, str(a), str(b)] for step, a, b in connections_to_steps(connections)]
    if not rows:
        raise ValueError("No lines to thread")

    pagesize = landscape(page_size) if landscape_mode else page_size
    left, right, top, bottom = (x * mm for x in margins_mm)
    Path(pdf_file).parent.mkdir(parents=True, exist_ok=True)

    doc = SimpleDocTemplate(str(pdf_file), pagesize=pagesize,
                            leftMargin=left, rightMargin=right,
                            topMargin=top, bottomMargin=bottom)

    styles = getSampleStyleSheet()
    story = []
    story.append(Paragraph(f"<b>{title}</b>", styles["Title"]))
    story.append(Spacer(1, 6))
    story.append(Paragraph(subtitle, styles["Normal"]))
    story.append(Spacer(1, 10))

    header = ["Step", "From Peg", "To Peg"]
    col_widths = [w * mm for w in col_widths_mm]

    chunks = [rows] if not rows_per_page or rows_per_page <= 0 else \
             [rows[i:i + rows_per_page] for i in range(0, len(rows), rows_per_page)]

    for idx, chunk in enumerate(chunks):
        table = Table([header] + chunk, colWidths=col_widths, repeatRows=1)
        table.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), colors.black),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
            ("ALIGN", (0, 0), (-1, -1), "CENTER"),
            ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
            ("FONTSIZE", (0, 0), (-1, 0), header_font),
            ("FONTSIZE", (0, 1), (-1, -1), row_font),
            ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.whitesmoke, colors.lightgrey]),
        ]))
        story.append(table)
        if idx < len(chunks) - 1:
            story.append(PageBreak())

    doc.build(story)
    return str(pdf_file)
