"""
Weekly escalation digest
- write_csv           : CSV (UTF-8 BOM so Excel opens it cleanly)
- write_pdf           : PDF summary for the state office (reportlab)
- write_weekly_digest : both files, tagged with the ISO week
"""
import csv
import logging
from datetime import datetime
from pathlib import Path
from database import SessionLocal
from escalation import escalated_reports
from models import utcnow

logger = logging.getLogger(__name__)

CSV_FIELDS = ["id", "problem", "district", "ward", "department_name", "status", "nos", "created_at", "updated_at"]


def _load_escalations(now: datetime | None = None) -> list[dict]:
    db = SessionLocal()
    try:
        return escalated_reports(db, now=now)
    finally:
        db.close()


# ── CSV ───────────────────────────────────────────────────────────────────────

def write_csv(rows: list[dict], path: Path) -> None:
    if not rows:
        path.write_text("no data\n", encoding="utf-8-sig")
        return
    with open(path, "w", newline="", encoding="utf-8-sig") as f:
        writer = csv.DictWriter(f, fieldnames=CSV_FIELDS, extrasaction="ignore")
        writer.writeheader()
        writer.writerows(rows)


# ── PDF (reportlab) ───────────────────────────────────────────────────────────

def _count_by(rows: list[dict], field: str) -> list[tuple[str, int]]:
    counts: dict[str, int] = {}
    for r in rows:
        key = r.get(field) or "Unassigned"
        counts[key] = counts.get(key, 0) + 1
    return sorted(counts.items(), key=lambda x: (-x[1], x[0]))


def _build_pdf_story(rows: list[dict], title: str):
    from reportlab.lib          import colors
    from reportlab.lib.units    import mm
    from reportlab.lib.styles   import ParagraphStyle
    from reportlab.platypus     import Paragraph, Spacer, Table, TableStyle

    font = "Helvetica"

    def style(name, size, space_after=4):
        return ParagraphStyle(name, fontName=font, fontSize=size, spaceAfter=space_after, leading=size * 1.5)

    base_ts = [
        ("FONTNAME",       (0, 0), (-1, -1), font),
        ("FONTSIZE",       (0, 0), (-1, -1), 9),
        ("BACKGROUND",     (0, 0), (-1,  0), colors.HexColor("#1f3a5f")),
        ("TEXTCOLOR",      (0, 0), (-1,  0), colors.white),
        ("GRID",           (0, 0), (-1, -1), 0.4, colors.grey),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#f5f5f5")]),
        ("VALIGN",         (0, 0), (-1, -1), "TOP"),
    ]

    story = [
        Paragraph(title, style("title", 16, 6)),
        Paragraph(f"Escalated reports: {len(rows)}", style("sub", 10, 10)),
    ]
    if not rows:
        story.append(Paragraph("No report currently breaches the escalation thresholds.", style("body", 10)))
        return story

    story.append(Paragraph("By district", style("h2", 11, 4)))
    t = Table([["District", "Reports"]] + [[k, str(v)] for k, v in _count_by(rows, "district")],
              colWidths=[100 * mm, 30 * mm])
    t.setStyle(TableStyle(base_ts))
    story.append(t)
    story.append(Spacer(1, 6 * mm))

    story.append(Paragraph("Reports", style("h2", 11, 4)))
    list_rows = [["ID", "Opened", "District", "Ward", "Problem", "Department", "Status", "Nos"]]
    for r in rows:
        list_rows.append([
            str(r["id"]),
            (r["created_at"] or "")[:10],
            r["district"][:20],
            r["ward"][:8],
            r["problem"][:20],
            (r["department_name"] or "Unassigned")[:24],
            r["status"],
            str(r["nos"]),
        ])
    col_w = [12 * mm, 20 * mm, 26 * mm, 12 * mm, 30 * mm, 42 * mm, 20 * mm, 12 * mm]
    t2 = Table(list_rows, colWidths=col_w, repeatRows=1)
    t2.setStyle(TableStyle(base_ts + [("FONTSIZE", (0, 1), (-1, -1), 8)]))
    story.append(t2)
    return story


def write_pdf(rows: list[dict], title: str, path: Path) -> None:
    from reportlab.lib.pagesizes import A4
    from reportlab.lib.units    import mm
    from reportlab.platypus     import SimpleDocTemplate

    doc = SimpleDocTemplate(
        str(path), pagesize=A4,
        leftMargin=15 * mm, rightMargin=15 * mm,
        topMargin=20 * mm, bottomMargin=20 * mm,
        title=title,
    )
    doc.build(_build_pdf_story(rows, title))


def write_weekly_digest(out: Path, now: datetime | None = None) -> tuple[Path, Path]:
    now = now or utcnow()
    year, week, _ = now.isocalendar()
    tag = f"{year}W{week:02d}"
    out.mkdir(parents=True, exist_ok=True)

    rows = _load_escalations(now)
    csv_path = out / f"escalations_{tag}.csv"
    pdf_path = out / f"escalations_{tag}.pdf"
    write_csv(rows, csv_path)
    write_pdf(rows, f"NagarSeva escalations, week of {now:%d %b %Y}", pdf_path)
    logger.info("Escalation digest %s written (%d reports)", tag, len(rows))
    return csv_path, pdf_path
