from __future__ import annotations
from datetime import date, timedelta
from io import BytesIO
from typing import Dict, List
from reportlab.lib import colors
from reportlab.lib.pagesizes import landscape, letter
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle
from models import Discipline, StudyBlock
from planner import DAY_LABELS, blocks_by_day, hours_by_day, hours_to_hhmm


def week_blocks_to_pdf(
    blocks: List[StudyBlock],
    disciplines: List[Discipline],
    week_start: date,
    plan_title: str = "",
) -> bytes:
    buf = BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=landscape(letter),
        leftMargin=30,
        rightMargin=30,
        topMargin=30,
        bottomMargin=30,
    )
    styles = getSampleStyleSheet()
    elems = []

    names: Dict[int, str] = {d.id: d.title for d in disciplines}
    week_end = week_start + timedelta(days=6)
    title = f"Study blocks: {week_start.isoformat()} - {week_end.isoformat()}"
    if plan_title:
        title = f"{plan_title} | {title}"
    elems.append(Paragraph(title, styles["Title"]))
    elems.append(Spacer(1, 10))

    # Weekly board: one column per day
    grouped = blocks_by_day(blocks)
    totals = hours_by_day(blocks)
    depth = max((len(v) for v in grouped.values()), default=0)
    header = [f"{DAY_LABELS[i]} ({hours_to_hhmm(totals.get(i, 0.0))})" for i in range(7)]
    board = [header]
    for row in range(depth):
        cells = []
        for i in range(7):
            day_blocks = grouped[i]
            if row < len(day_blocks):
                b = day_blocks[row]
                cells.append(f"{names.get(b.discipline_id, b.discipline_id)}\n{hours_to_hhmm(b.duration_hours)}")
            else:
                cells.append("")
        board.append(cells)

    board_table = Table(board, hAlign="LEFT", colWidths=[100] * 7)
    board_table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
        ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("FONTSIZE", (0, 1), (-1, -1), 8),
    ]))
    elems.append(board_table)
    elems.append(Spacer(1, 12))

    elems.append(Paragraph("Hours per discipline", styles["Heading3"]))
    per_discipline: Dict[int, float] = {}
    for b in blocks:
        per_discipline[b.discipline_id] = per_discipline.get(b.discipline_id, 0.0) + b.duration_hours
    table_data = [["Discipline", "Blocks", "Hours/week"]]
    for d in disciplines:
        if d.id not in per_discipline:
            continue
        count = sum(1 for b in blocks if b.discipline_id == d.id)
        table_data.append([d.title, str(count), hours_to_hhmm(per_discipline[d.id])])
    table_data.append(["Total", str(len(blocks)), hours_to_hhmm(sum(per_discipline.values()))])

    table = Table(table_data, hAlign="LEFT", colWidths=[220, 60, 80])
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
        ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
        ("BACKGROUND", (0, -1), (-1, -1), colors.whitesmoke),
        ("ALIGN", (1, 1), (2, -1), "RIGHT"),
    ]))
    elems.append(table)

    doc.build(elems)
    return buf.getvalue()
