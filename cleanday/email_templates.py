"""
MJML Email Templates
Responsive templates for client and staff e-mails
"""

from html import escape
from typing import Optional

# App theme colors - Sky/Slate color scheme
THEME = {
    "primary": "#0ea5e9",
    "primary_light": "#e0f2fe",
    "background": "#f8fafc",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
}


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    company_name: str = "CleanDay",
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
    footer_note: Optional[str] = None,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section padding="20px 0">
          <mj-column>
            <mj-button href="{cta_url}" background-color="{THEME['primary']}" color="#ffffff"
              font-weight="600" border-radius="8px" padding="18px 40px" font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    footer_notice = ""
    if footer_note:
        footer_notice = f"""
        <mj-text align="center" font-size="12px" color="#94a3b8" padding="12px 0 0 0">
          {footer_note}
        </mj-text>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="#ffffff" padding="32px 40px 0 40px">
          <mj-column>
            <mj-text font-size="20px" font-weight="700" color="{THEME['text_primary']}" padding="0 0 16px 0">
              {company_name}
            </mj-text>
            <mj-divider border-color="{THEME['border']}" border-width="1px" padding="0 0 24px 0" />
          </mj-column>
        </mj-section>

        <mj-section background-color="#ffffff" padding="0 40px 40px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" line-height="1.3" padding="0 0 16px 0">
              {title}
            </mj-text>
            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <mj-section padding="24px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="#94a3b8" padding="0">
              Sent by {company_name} with CleanDay
            </mj-text>
            {footer_notice}
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def text_to_mjml(body: str) -> str:
    """Render user-authored plain text as escaped MJML paragraphs"""
    paragraphs = [p.strip() for p in body.split("\n\n") if p.strip()]
    return "\n".join(
        f"<mj-text>{escape(p).replace(chr(10), '<br/>')}</mj-text>" for p in paragraphs
    )


def invoice_template(
    client_name: str,
    company_name: str,
    invoice_number: str,
    amount: float,
    due_date: str = "",
) -> str:
    """Invoice notification for client; the PDF travels as an attachment"""
    due_date_section = f"<br/>Due Date: {due_date}" if due_date else ""

    content = f"""
    <mj-text>
      Hi {escape(client_name)},
    </mj-text>
    <mj-text>
      Your invoice from <strong>{escape(company_name)}</strong> is attached.
    </mj-text>
    <mj-text align="center" font-size="32px" font-weight="700" color="{THEME['text_primary']}" padding="20px 0">
      ${amount:,.2f}
    </mj-text>
    <mj-text font-size="14px" color="{THEME['text_muted']}">
      Invoice: {invoice_number}{due_date_section}
    </mj-text>
    """

    return get_base_template(
        title=f"Invoice {invoice_number}",
        preview_text=f"Invoice {invoice_number} for ${amount:,.2f}",
        content_sections=content,
        company_name=escape(company_name),
    )


def campaign_template(subject: str, body: str, company_name: str) -> str:
    return get_base_template(
        title=escape(subject),
        preview_text=escape(subject),
        content_sections=text_to_mjml(body),
        company_name=escape(company_name),
        footer_note="Reply STOP to stop receiving marketing messages.",
    )


def booking_update_template(
    staff_name: str, headline: str, booking_number: str, client_name: str, when: str
) -> str:
    """Staff notification for booking events (new booking, awaiting approval...)"""
    content = f"""
    <mj-text>
      Hi {escape(staff_name)},
    </mj-text>
    <mj-text>
      {escape(headline)}
    </mj-text>
    <mj-text font-size="14px" color="{THEME['text_muted']}">
      Booking: {booking_number}<br/>
      Client: {escape(client_name)}<br/>
      When: {when}
    </mj-text>
    """
    return get_base_template(
        title=escape(headline),
        preview_text=f"{booking_number}: {escape(headline)}",
        content_sections=content,
        footer_note="Change which e-mails you receive under Notification preferences.",
    )
