"""
Render a project proposal to a single flowing PDF.
"""
import io
from datetime import date
from typing import Optional

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas


FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"
MARGIN = 56
page_width, page_height = A4


def format_date(d: Optional[date]) -> str:
    if not d:
        return ""
    day = d.day
    if 10 <= day % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")
    return d.strftime(f"%b {day}{suffix}, %Y")


class _Writer:
    """Tracks the cursor and starts a new page when the bottom margin is reached."""

    def __init__(self, c: canvas.Canvas):
        self.c = c
        self.y = page_height - MARGIN

    def ensure(self, needed: float):
        if self.y - needed < MARGIN:
            self.c.showPage()
            self.y = page_height - MARGIN

    def gap(self, h: float):
        self.y -= h

    def wrapped(self, text: str, font=FONT, size=11, color=colors.black, indent=0, leading=None):
        leading = leading or size + 4
        max_width = page_width - 2 * MARGIN - indent
        for paragraph in (text or "").splitlines() or [""]:
            line = ""
            for word in paragraph.split():
                test_line = (line + " " + word).strip()
                if stringWidth(test_line, font, size) <= max_width:
                    line = test_line
                else:
                    self._line(line, font, size, color, indent, leading)
                    line = word
            self._line(line, font, size, color, indent, leading)

    def _line(self, text, font, size, color, indent, leading):
        self.ensure(leading)
        self.c.setFont(font, size)
        self.c.setFillColor(color)
        self.c.drawString(MARGIN + indent, self.y, text)
        self.y -= leading

    def heading(self, text: str, size=13):
        self.ensure(size + 18)
        self.gap(8)
        self.c.setFont(FONT_BOLD, size)
        self.c.setFillColor(colors.black)
        self.c.drawString(MARGIN, self.y, text)
        self.y -= 6
        self.c.setStrokeColor(colors.grey)
        self.c.line(MARGIN, self.y, page_width - MARGIN, self.y)
        self.y -= size + 4


def build_proposal_pdf(proposal: dict, project: dict) -> bytes:
    """``proposal`` and ``project`` are the serialized API payloads."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    c.setTitle(proposal.get("title") or "PROJECT PROPOSAL")
    w = _Writer(c)

    c.setFont(FONT_BOLD, 20)
    c.drawCentredString(page_width / 2, w.y, proposal.get("title") or "PROJECT PROPOSAL")
    w.gap(28)
    w.wrapped(project.get("name") or "", font=FONT_BOLD, size=13)
    w.wrapped(f"Client: {project.get('client_name') or ''}", size=11)
    if project.get("project_address"):
        w.wrapped(f"Address: {project['project_address']}", size=11)
    w.wrapped(f"Type: {(project.get('project_type') or '').replace('_', ' ').title()}", size=11, color=colors.grey)

    w.heading("Work Summary")
    w.wrapped(proposal.get("work_summary") or "")

    w.heading("Scope of Work")
    for i, item in enumerate(proposal.get("scope_of_work") or [], start=1):
        w.wrapped(f"{i}. {item}", indent=8)

    w.heading("Project Team")
    w.wrapped(f"Project Lead: {proposal.get('project_lead') or 'TBD'}")
    w.wrapped(f"Site Engineer: {proposal.get('site_engineer') or 'TBD'}")
    w.wrapped(f"Supervisor: {proposal.get('supervisor') or 'TBD'}")

    if proposal.get("additional_notes"):
        w.heading("Additional Notes")
        w.wrapped(proposal["additional_notes"])

    w.heading("Approval")
    w.wrapped(f"Status: {(proposal.get('approval_status') or 'pending').title()}")
    if proposal.get("approved_by"):
        w.wrapped(f"Approved by: {proposal['approved_by']}")
    if proposal.get("approval_date"):
        w.wrapped(f"Approval date: {format_date(date.fromisoformat(proposal['approval_date']))}")

    c.showPage()
    c.save()
    return buf.getvalue()
