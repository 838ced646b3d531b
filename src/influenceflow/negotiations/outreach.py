"""Default initial outreach email."""

from __future__ import annotations

import html
from dataclasses import dataclass

from influenceflow.domain.models import Campaign, Negotiation

SIGNATURE = "InfluenceFlow AI"


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    text: str
    html: str


def _niches(negotiation: Negotiation) -> str:
    return ", ".join(negotiation.parameters.niches) or "your niche"


def _engagement(negotiation: Negotiation) -> str:
    rate = negotiation.parameters.engagement_rate
    return f"{rate:g}%" if rate is not None else "strong"


def _duration(campaign: Campaign) -> str:
    if campaign.start_date and campaign.end_date:
        return f"{campaign.start_date} to {campaign.end_date}"
    return "to be agreed"


def render_outreach(campaign: Campaign, negotiation: Negotiation) -> RenderedEmail:
    """Render the first email a creator receives for *campaign*.

    Missing creator metrics fall back to neutral wording instead of
    leaving blanks in the message.
    """
    name = negotiation.creator_name
    subject = f"Collaboration opportunity: {campaign.title}"
    text = (
        f"Hi {name},\n\n"
        "We're reaching out because we love your content and believe you'd be a great "
        f'fit for our campaign: "{campaign.title}".\n\n'
        "Campaign details:\n"
        f"- {campaign.description}\n"
        f"- Budget: ${campaign.budget}\n"
        f"- Duration: {_duration(campaign)}\n\n"
        f"We especially appreciate your content about {_niches(negotiation)} and your "
        f"engagement rate of {_engagement(negotiation)}.\n\n"
        "Are you interested in collaborating with us? Let us know your thoughts by "
        "replying to this email.\n\n"
        f"Best regards,\n{SIGNATURE}\n"
    )

    e = html.escape
    body_html = (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        f"<p>Hi {e(name)},</p>"
        "<p>We're reaching out because we love your content and believe you'd be a great "
        f"fit for our campaign: <strong>&quot;{e(campaign.title)}&quot;</strong>.</p>"
        '<div style="background-color: #f7f7f7; padding: 15px; border-radius: 5px;">'
        '<h3 style="margin-top: 0;">Campaign details:</h3><ul>'
        f"<li>{e(campaign.description)}</li>"
        f"<li><strong>Budget:</strong> ${e(str(campaign.budget))}</li>"
        f"<li><strong>Duration:</strong> {e(_duration(campaign))}</li>"
        "</ul></div>"
        f"<p>We especially appreciate your content about <strong>{e(_niches(negotiation))}"
        f"</strong> and your engagement rate of <strong>{e(_engagement(negotiation))}"
        "</strong>.</p>"
        "<p>Are you interested in collaborating with us? Let us know your thoughts by "
        "replying to this email.</p>"
        f"<p>Best regards,<br>{SIGNATURE}</p>"
        "</div>"
    )
    return RenderedEmail(subject=subject, text=text, html=body_html)
