"""
Briefsmith
Documentation pipeline stages.

Typed stage results plus the ordered stage descriptor list the
DocumentationPipeline executes:

    reader → searcher → budget_estimator → writer → verifier

Result types accept whatever object the model produced: missing fields fall
back to empty defaults, unknown fields are ignored, camelCase / snake_case
and short aliases are resolved here at the boundary. ``raw`` keeps the
parsed object so later prompts see exactly what the model returned.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable

from briefsmith.ai.documentation import assemble_sections, build_full_document, format_budget_estimate
from briefsmith.ai.gateway import CompletionOptions

logger = logging.getLogger(__name__)

COMPLETENESS_THRESHOLD = 0.8
NOT_SPECIFIED = "Not specified"


def _pick(data: dict, *keys, default=None):
    """First truthy value among ``keys``."""
    for key in keys:
        value = data.get(key)
        if value:
            return value
    return default


def _str_list(value) -> list[str]:
    if isinstance(value, list):
        return [str(v) for v in value if v not in (None, "")]
    if isinstance(value, str) and value.strip():
        return [value]
    return []


def _number(value):
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            return float(value.replace(",", ""))
        except ValueError:
            return None
    return None


def _text(value) -> str:
    """Section prose; structured values are rendered as indented JSON."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    return json.dumps(value, indent=2, ensure_ascii=False)


def _dump(value) -> str:
    return json.dumps(value, ensure_ascii=False)


# ═════════════════════════════════════════════════════════════════════════════
# Project input
# ═════════════════════════════════════════════════════════════════════════════

@dataclass
class ProjectBrief:
    """Read-only view of a project record, as the stages see it."""
    title: str = "New Project"
    description: str = ""
    requirements: list[dict] = field(default_factory=list)
    tech_stack: list[str] = field(default_factory=list)
    features: list[str] = field(default_factory=list)
    start_date: date | datetime | None = None
    end_date: date | datetime | None = None
    budget_amount: float | None = None
    budget_currency: str = "INR"

    def timeline_span(self) -> str:
        """Whole-day ceiling of end - start, or "Not specified"."""
        if not self.start_date or not self.end_date:
            return NOT_SPECIFIED
        delta = self.end_date - self.start_date
        return f"{math.ceil(delta.total_seconds() / 86400)} days"

    def current_budget(self) -> str:
        if not self.budget_amount:
            return NOT_SPECIFIED
        amount = self.budget_amount
        if isinstance(amount, float) and amount.is_integer():
            amount = int(amount)
        return f"{amount} {self.budget_currency or 'INR'}"


# ═════════════════════════════════════════════════════════════════════════════
# Stage results
# ═════════════════════════════════════════════════════════════════════════════

@dataclass
class ReaderResult:
    """Stage 1: structured reading of the requirements."""
    core_objectives: list[str] = field(default_factory=list)
    technical_complexity: str = ""
    key_dependencies: list[str] = field(default_factory=list)
    risk_factors: list[str] = field(default_factory=list)
    resource_requirements: dict = field(default_factory=dict)
    raw: dict = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: dict) -> ReaderResult:
        resources = _pick(data, "resourceRequirements", "resource_requirements", default={})
        return cls(
            core_objectives=_str_list(_pick(data, "coreObjectives", "core_objectives", "objectives")),
            technical_complexity=str(_pick(data, "technicalComplexity", "technical_complexity",
                                           "complexity", default="")),
            key_dependencies=_str_list(_pick(data, "keyDependencies", "key_dependencies",
                                             "dependencies")),
            risk_factors=_str_list(_pick(data, "riskFactors", "risk_factors", "risks")),
            resource_requirements=resources if isinstance(resources, dict) else {},
            raw=data,
        )


@dataclass
class SearcherResult:
    """Stage 2: recommended technical patterns."""
    architectural_patterns: list[str] = field(default_factory=list)
    api_design_patterns: list[str] = field(default_factory=list)
    database_schema_patterns: list[str] = field(default_factory=list)
    security_considerations: list[str] = field(default_factory=list)
    scalability_approaches: list[str] = field(default_factory=list)
    raw: dict = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: dict) -> SearcherResult:
        return cls(
            architectural_patterns=_str_list(_pick(data, "architecturalPatterns",
                                                   "architectural_patterns")),
            api_design_patterns=_str_list(_pick(data, "apiDesignPatterns", "api_design_patterns")),
            database_schema_patterns=_str_list(_pick(data, "databaseSchemaPatterns",
                                                     "database_schema_patterns")),
            security_considerations=_str_list(_pick(data, "securityConsiderations",
                                                    "security_considerations", "security")),
            scalability_approaches=_str_list(_pick(data, "scalabilityApproaches",
                                                   "scalability_approaches", "scalability")),
            raw=data,
        )


@dataclass
class BudgetLineItem:
    category: str = ""
    amount: float | None = None
    percentage: float | None = None
    description: str = ""


@dataclass
class BudgetPhase:
    name: str = ""
    budget: float | None = None
    duration: str = ""
    description: str = ""


@dataclass
class BudgetEstimate:
    """Stage 3: costed delivery plan. Percentages are advisory, never checked."""
    total_budget: float | None = None
    currency: str = "INR"
    breakdown: list[BudgetLineItem] = field(default_factory=list)
    phases: list[BudgetPhase] = field(default_factory=list)
    assumptions: list[str] = field(default_factory=list)
    raw: dict = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: dict) -> BudgetEstimate:
        breakdown = _pick(data, "breakdown", "budgetBreakdown", default=[])
        phases = _pick(data, "phases", "milestones", default=[])
        return cls(
            total_budget=_number(_pick(data, "totalBudget", "total_budget", "total")),
            currency=str(_pick(data, "currency", default="INR")),
            breakdown=[
                BudgetLineItem(
                    category=str(item.get("category") or ""),
                    amount=_number(item.get("amount")),
                    percentage=_number(item.get("percentage")),
                    description=str(item.get("description") or ""),
                )
                for item in (breakdown if isinstance(breakdown, list) else [])
                if isinstance(item, dict)
            ],
            phases=[
                BudgetPhase(
                    name=str(item.get("name") or ""),
                    budget=_number(_pick(item, "budget", "amount")),
                    duration=str(item.get("duration") or ""),
                    description=str(item.get("description") or ""),
                )
                for item in (phases if isinstance(phases, list) else [])
                if isinstance(item, dict)
            ],
            assumptions=_str_list(_pick(data, "assumptions", "notes")),
            raw=data,
        )


# Writer field → accepted keys, in documentation section order
WRITER_FIELD_ALIASES = {
    "overview": ("projectOverview", "overview"),
    "architecture": ("technicalArchitecture", "architecture"),
    "api_endpoints": ("apiEndpoints", "endpoints"),
    "database_schema": ("databaseSchema", "schema"),
    "timeline": ("implementationTimeline", "timeline"),
    "tech_stack": ("techStackDetails", "techStack"),
    "features": ("featuresBreakdown", "features"),
    "budget_estimation": ("budgetEstimation", "budget"),
}


@dataclass
class WriterResult:
    """Stage 4: prose for each documentation section (empty when absent)."""
    overview: str = ""
    architecture: str = ""
    api_endpoints: str = ""
    database_schema: str = ""
    timeline: str = ""
    tech_stack: str = ""
    features: str = ""
    budget_estimation: str = ""
    raw: dict = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: dict) -> WriterResult:
        values = {
            name: _text(_pick(data, *aliases))
            for name, aliases in WRITER_FIELD_ALIASES.items()
        }
        return cls(**values, raw=data)

    def section_content(self) -> dict[str, str]:
        return {name: getattr(self, name) for name in WRITER_FIELD_ALIASES}


@dataclass
class VerifierResult:
    """Stage 5: quality check of the assembled document. Advisory only."""
    completeness: float | None = None
    technical_accuracy: str = ""
    consistency: str = ""
    missing_information: list[str] = field(default_factory=list)
    areas_needing_clarification: list[str] = field(default_factory=list)
    raw: dict = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: dict) -> VerifierResult:
        return cls(
            completeness=_number(data.get("completeness")),
            technical_accuracy=_text(_pick(data, "technicalAccuracy", "technical_accuracy",
                                           "accuracy")),
            consistency=_text(data.get("consistency")),
            missing_information=_str_list(_pick(data, "missingInformation",
                                                "missing_information", "gaps")),
            areas_needing_clarification=_str_list(_pick(data, "areasNeedingClarification",
                                                        "areas_needing_clarification")),
            raw=data,
        )

    @property
    def below_threshold(self) -> bool:
        return self.completeness is not None and self.completeness < COMPLETENESS_THRESHOLD


# ═════════════════════════════════════════════════════════════════════════════
# Stage descriptors
# ═════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class StageSpec:
    """
    One pipeline stage.

    Attributes:
        name:            Key of the result in the pipeline context.
        depends_on:      Context keys the stage reads ("project" or earlier stages).
        build_messages:  (registry, context) -> chat messages.
        options:         Gateway options for the stage's single call.
        result_type:     Class with ``from_dict`` turning the parsed object
                         into the stage result.
        finalize:        Optional (result, context) -> result post-processing.
    """
    name: str
    depends_on: tuple[str, ...]
    build_messages: Callable[[Any, dict], list[dict]]
    options: CompletionOptions
    result_type: type
    finalize: Callable[[Any, dict], Any] | None = None


def _reader_messages(registry, ctx: dict) -> list[dict]:
    project: ProjectBrief = ctx["project"]
    return registry.render(
        "reader",
        project_title=project.title,
        description=project.description or "N/A",
        requirements=_dump(project.requirements),
        tech_stack=", ".join(project.tech_stack) or NOT_SPECIFIED,
        features=", ".join(project.features) or NOT_SPECIFIED,
    )


def _searcher_messages(registry, ctx: dict) -> list[dict]:
    project: ProjectBrief = ctx["project"]
    return registry.render(
        "searcher",
        analysis=_dump(ctx["reader"].raw),
        tech_stack=", ".join(project.tech_stack) or NOT_SPECIFIED,
    )


def _budget_messages(registry, ctx: dict) -> list[dict]:
    project: ProjectBrief = ctx["project"]
    return registry.render(
        "budget_estimator",
        project_title=project.title,
        description=project.description or "N/A",
        tech_stack=", ".join(project.tech_stack) or NOT_SPECIFIED,
        features=", ".join(project.features) or NOT_SPECIFIED,
        timeline=project.timeline_span(),
        current_budget=project.current_budget(),
        currency=project.budget_currency or "INR",
        analysis=_dump(ctx["reader"].raw),
    )


def _writer_messages(registry, ctx: dict) -> list[dict]:
    project: ProjectBrief = ctx["project"]
    return registry.render(
        "writer",
        project_title=project.title,
        analysis=_dump(ctx["reader"].raw),
        patterns=_dump(ctx["searcher"].raw),
        budget_estimate=_dump(ctx["budget_estimator"].raw),
    )


def _writer_finalize(result: WriterResult, ctx: dict) -> WriterResult:
    if not result.budget_estimation:
        result.budget_estimation = format_budget_estimate(ctx.get("budget_estimator"))
    return result


def _verifier_messages(registry, ctx: dict) -> list[dict]:
    project: ProjectBrief = ctx["project"]
    return registry.render(
        "verifier",
        requirements=_dump(project.requirements),
        full_document=build_full_document(assemble_sections(ctx["writer"])),
    )


def _verifier_finalize(result: VerifierResult, ctx: dict) -> VerifierResult:
    if result.below_threshold:
        logger.warning("Documentation completeness: %s", result.completeness,
                       extra={"stage": "verifier"})
    return result


STAGES: tuple[StageSpec, ...] = (
    StageSpec(
        name="reader",
        depends_on=("project",),
        build_messages=_reader_messages,
        options=CompletionOptions(temperature=0.3, max_tokens=1500),
        result_type=ReaderResult,
    ),
    StageSpec(
        name="searcher",
        depends_on=("project", "reader"),
        build_messages=_searcher_messages,
        options=CompletionOptions(temperature=0.3, max_tokens=1500),
        result_type=SearcherResult,
    ),
    StageSpec(
        name="budget_estimator",
        depends_on=("project", "reader"),
        build_messages=_budget_messages,
        options=CompletionOptions(temperature=0.3, max_tokens=2000),
        result_type=BudgetEstimate,
    ),
    StageSpec(
        name="writer",
        depends_on=("project", "reader", "searcher", "budget_estimator"),
        build_messages=_writer_messages,
        options=CompletionOptions(temperature=0.5, max_tokens=4000),
        result_type=WriterResult,
        finalize=_writer_finalize,
    ),
    StageSpec(
        name="verifier",
        depends_on=("project", "writer"),
        build_messages=_verifier_messages,
        options=CompletionOptions(temperature=0.3, max_tokens=1000),
        result_type=VerifierResult,
        finalize=_verifier_finalize,
    ),
)
