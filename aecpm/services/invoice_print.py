from datetime import date
from html import escape
from typing import Optional

from ..config import settings
from ..models.models import Invoice, Project


STYLE = """
body { font-family: Arial, sans-serif; margin: 0; padding: 40px; line-height: 1.6; color: #333; background: white; }
.invoice-container { max-width: 700px; margin: 0 auto; }
.header { text-align: center; margin-bottom: 40px; }
.company-name { font-size: 18px; font-weight: bold; margin-bottom: 5px; text-transform: uppercase; letter-spacing: 3px; }
.company-info { font-size: 11px; line-height: 1.3; }
.service-header { font-size: 14px; font-weight: bold; margin: 30px 0 15px 0; display: flex; justify-content: space-between; border-bottom: 1px solid #333; padding-bottom: 5px; }
.service-line { font-size: 12px; margin: 8px 0; padding-left: 20px; display: flex; justify-content: space-between; }
.paid-item { color: #28a745; }
.current-item { color: #dc3545; font-weight: bold; }
.future-item { color: #6c757d; }
.due-line { font-size: 12px; margin: 8px 0; padding-left: 40px; display: flex; justify-content: space-between; text-decoration: underline; }
.balance-line { font-size: 12px; font-weight: bold; margin: 15px 0; display: flex; justify-content: space-between; border-top: 1px solid #ddd; padding-top: 10px; }
.footer { margin-top: 50px; font-size: 12px; line-height: 1.4; }
.signature { margin-top: 20px; color: #007bff; text-decoration: underline; }
@media print { body { margin: 0; padding: 20px; } }
"""


def _money(value: float) -> str:
    return f"${value:.2f}"


def long_date(d: Optional[date]) -> str:
    if not d:
        return ""
    return f"{d.strftime('%B')} {d.day}, {d.year}"


def short_date(d: Optional[date]) -> str:
    if not d:
        return ""
    return f"{d.month}/{d.day}/{d.strftime('%y')}"


def render_invoice_html(invoice: Invoice, project: Project, statement: dict) -> str:
    """Printable statement for an invoice; ``statement`` comes from classify_services."""
    e = lambda v: escape(str(v)) if v is not None else ""  # noqa: E731

    company_info = e(settings.invoice_company_info or "").replace("\n", "<br>")
    client_email = (
        f'<a href="mailto:{e(project.client_email)}">{e(project.client_email)}</a><br>'
        if project.client_email else ""
    )

    lines = []
    for s in statement["paid"]:
        lines.append(
            '<div class="service-line paid-item">'
            f'<span>{e(s["name"])}:</span>'
            f'<span>Pd- {short_date(s["payment_date"])} &lt;{_money(s["unit_price"])}&gt;</span>'
            '</div>'
        )
    for s in statement["current"]:
        lines.append(
            '<div class="service-line current-item">'
            f'<span>{e(s["name"])}</span><span>{_money(s["balance_due"])}</span>'
            '</div>'
            '<div class="due-line">'
            f'<span>Due upon receipt – {e(s["name"])} Fee</span>'
            f'<span>___     {_money(s["balance_due"])}</span>'
            '</div>'
        )
    lines.append(
        '<div class="balance-line">'
        f'<span>Balance to Finish:</span><span>{_money(statement["balance_to_finish"])}</span>'
        '</div>'
    )
    for s in statement["future"]:
        lines.append(
            '<div class="service-line future-item">'
            f'<span>{e(s["name"])}</span><span>{_money(s["unit_price"])}</span>'
            '</div>'
        )

    signer_email = (
        f'<br><a href="mailto:{e(settings.invoice_signer_email)}" class="signature">{e(settings.invoice_signer_email)}</a>'
        if settings.invoice_signer_email else ""
    )
    discipline = e(settings.invoice_discipline)

    return f"""<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>Invoice {e(invoice.invoice_number)}</title>
<style>{STYLE}</style>
</head>
<body>
<div class="invoice-container">
  <div class="header">
    <div class="company-name">{e(settings.invoice_company_name)}</div>
    <div class="company-info">{company_info}</div>
  </div>
  <div class="date">{long_date(invoice.issue_date)}</div>
  <div class="client-info">
    {e(project.client_name)}<br>
    {client_email}
    {e(project.client_phone)}
  </div>
  <div class="subject"><strong>RE:</strong> {e(project.name)}: {e(project.project_address)}</div>
  <div class="project-address">{e(project.project_address)}</div>
  <div class="intro-text">The following outlines the cost and expense associated with {discipline} services:</div>
  <div class="service-header"><span>{discipline}</span><span>{_money(statement["total_project_cost"])}</span></div>
  {"".join(lines)}
  <div class="footer">
    <p>Thank you, It's been my pleasure working with you.</p>
    <p>Respectfully yours,</p>
    <br>
    <p><strong>{e(settings.invoice_signer_name)}</strong>{signer_email}</p>
  </div>
</div>
</body>
</html>
"""
