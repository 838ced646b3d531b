"""Contract template rendering and fee allocation.

Templates use fixed ``{PLACEHOLDER}`` tokens substituted by plain string
replacement; unknown tokens are left untouched so a brand template can carry
its own literal braces.
"""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path

from influenceflow.domain.models import CENT, quantize_money

DEFAULT_TEMPLATE = """# INFLUENCER AGREEMENT

This Influencer Agreement (the "Agreement") takes effect on the date both parties have signed it and is made between {BRAND_NAME} ("Brand") and {CREATOR_NAME} ("Influencer").

## 1. SERVICES

Influencer will create and publish the following content for Brand (the "Services"):
- {DELIVERABLES}

## 2. TERM

This Agreement runs from {START_DATE} through {END_DATE} unless terminated earlier under Section 8.

## 3. COMPENSATION

Brand will pay Influencer a total fee of ${FEE} (the "Fee"). The Fee is allocated across the deliverables as listed in Schedule A, and each amount becomes payable once Brand confirms that deliverable as completed.

## 4. CONTENT REQUIREMENTS

All content produced under this Agreement must:
- {REQUIREMENTS}
- comply with applicable law and the policies of the publishing platform
- contain no defamatory, obscene or offensive material

## 5. REVISIONS

Influencer will make up to {REVISIONS} rounds of revisions requested by Brand.

## 6. INTELLECTUAL PROPERTY

Influencer assigns to Brand all right, title and interest in the content created as part of the Services.

## 7. CONFIDENTIALITY

Influencer will keep confidential any non-public information Brand provides.

## 8. TERMINATION

Either party may terminate this Agreement by written notice if the other party materially breaches it and does not cure the breach within 10 days of receiving that notice.

## 9. GOVERNING LAW

This Agreement is governed by the laws of the jurisdiction in which Brand is registered.

## 10. ENTIRE AGREEMENT

This Agreement is the entire agreement between the parties on its subject and replaces all earlier agreements and understandings, written or oral.

BRAND: {BRAND_NAME}
Signature: _________________________
Date: _________________________

INFLUENCER: {CREATOR_NAME}
Signature: _________________________
Date: _________________________
"""

PLACEHOLDERS: tuple[str, ...] = (
    "BRAND_NAME",
    "CREATOR_NAME",
    "FEE",
    "DELIVERABLES",
    "START_DATE",
    "END_DATE",
    "REQUIREMENTS",
    "REVISIONS",
)


def load_template(path: Path | None) -> str:
    """Return the configured template text, or the built-in default."""
    if path is None:
        return DEFAULT_TEMPLATE
    return path.read_text(encoding="utf-8")


def render_template(template: str, values: dict[str, str]) -> str:
    """Substitute every ``{NAME}`` placeholder present in *values*."""
    rendered = template
    for name in PLACEHOLDERS:
        rendered = rendered.replace("{" + name + "}", values.get(name, ""))
    return rendered


def split_fee(fee: Decimal, count: int) -> list[Decimal]:
    """Divide *fee* evenly across *count* deliverables in whole cents.

    Leftover cents go one each to the first deliverables, so the amounts
    always sum exactly to the fee rounded to cents and the result depends
    only on the inputs.

    Args:
        fee: Total fee.
        count: Number of deliverables; must be positive.

    Returns:
        Per-deliverable amounts in list order.
    """
    if count < 1:
        raise ValueError("count must be positive")
    total_cents = int(quantize_money(fee) / CENT)
    base, remainder = divmod(total_cents, count)
    return [
        (Decimal(base + (1 if index < remainder else 0)) * CENT).quantize(CENT)
        for index in range(count)
    ]


def render_schedule(names: list[str], amounts: list[Decimal]) -> str:
    """Render Schedule A listing each deliverable's amount."""
    lines = ["", "## SCHEDULE A: DELIVERABLE AMOUNTS", ""]
    lines.extend(
        f"{index}. {name}: ${amount}"
        for index, (name, amount) in enumerate(zip(names, amounts, strict=True), start=1)
    )
    return "\n".join(lines) + "\n"
