"""
Briefsmith
Documentation assembly.

Turns the writer stage's prose into ordered documentation sections and the
derived full document, and renders a BudgetEstimate as markdown when the
writer left the budget section empty.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

SECTION_ORDER = (
    "overview",
    "architecture",
    "api_endpoints",
    "database_schema",
    "timeline",
    "tech_stack",
    "features",
    "budget_estimation",
)
SECTION_SEPARATOR = "\n\n---\n\n"
BUDGET_UNAVAILABLE = "Budget estimation not available."


@dataclass
class PipelineArtifact:
    """One successful documentation run, ready to be stored on the project."""
    sections: list[dict]
    generated_at: datetime
    version: int
    verification: object | None = field(default=None, repr=False)

    @property
    def full_document(self) -> str:
        return build_full_document(self.sections)

    def to_dict(self) -> dict:
        return {
            "sections": [
                {**s, "generated_at": s["generated_at"].isoformat()} for s in self.sections
            ],
            "full_document": self.full_document,
            "generated_at": self.generated_at.isoformat(),
            "version": self.version,
        }


def assemble_sections(writer, generated_at: datetime | None = None) -> list[dict]:
    """
    Map writer fields onto the fixed section order.

    Sections with empty content are omitted entirely.
    """
    generated_at = generated_at or datetime.now(timezone.utc)
    content = writer.section_content()
    return [
        {"section": kind, "content": content[kind], "generated_at": generated_at}
        for kind in SECTION_ORDER
        if content.get(kind)
    ]


def build_full_document(sections: list[dict]) -> str:
    return SECTION_SEPARATOR.join(f"# {s['section']}\n\n{s['content']}" for s in sections)


def _fmt(value) -> str:
    if value is None or value == "" or value == 0:
        return "N/A"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def format_budget_estimate(estimate) -> str:
    """Render a BudgetEstimate as a markdown section."""
    if estimate is None:
        return BUDGET_UNAVAILABLE

    currency = estimate.currency or "INR"
    lines = [
        "## Budget Estimation",
        "",
        f"**Total Estimated Budget:** {_fmt(estimate.total_budget)} {currency}",
        "",
    ]

    if estimate.breakdown:
        lines += [
            "### Budget Breakdown",
            "",
            "| Category | Amount | Percentage | Description |",
            "|----------|--------|------------|-------------|",
        ]
        for item in estimate.breakdown:
            lines.append(
                f"| {item.category or 'N/A'} | {_fmt(item.amount)} {currency} "
                f"| {_fmt(item.percentage)}% | {item.description or 'N/A'} |"
            )
        lines.append("")

    if estimate.phases:
        lines += ["### Phase-wise Budget", ""]
        for index, phase in enumerate(estimate.phases, start=1):
            lines.append(f"**Phase {index}: {phase.name or 'N/A'}**")
            lines.append(f"- Budget: {_fmt(phase.budget)} {currency}")
            lines.append(f"- Duration: {phase.duration or 'N/A'}")
            if phase.description:
                lines.append(f"- Description: {phase.description}")
            lines.append("")

    if estimate.assumptions:
        lines += ["### Assumptions", ""]
        lines += [f"{index}. {text}" for index, text in enumerate(estimate.assumptions, start=1)]

    return "\n".join(lines).rstrip() + "\n"
