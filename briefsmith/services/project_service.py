"""Project service layer: business logic for projects, transcripts and documentation.

Transaction policy: public functions call commit on success (rolling back and
re-raising on database errors). Lookups raise NotFoundError, bad input
raises ValidationError.

Provides:
- Project create / get / list / active-chat lookup
- Conversation transcript append and read-back as chat messages
- Captured-requirements application
- Documentation pipeline run + artifact persistence (version = previous + 1)
"""
import logging
from datetime import datetime, timezone

from sqlalchemy import delete, func, select

from briefsmith.ai.stages import ProjectBrief
from briefsmith.core.exceptions import NotFoundError, ValidationError
from briefsmith.models import db
from briefsmith.models.project import (
    ACTIVE_CHAT_STATUSES,
    DEFAULT_CURRENCY,
    PROJECT_STATUSES,
    REQUIREMENT_PRIORITIES,
    SECTION_KINDS,
    TURN_ROLES,
    ConversationTurn,
    DocumentationSection,
    Project,
    ProjectRequirement,
)
from briefsmith.utils.helpers import commit_or_rollback, parse_date

logger = logging.getLogger(__name__)

LIST_LIMIT = 50


def _validate_enum(value, allowed, field_name):
    if value and value not in allowed:
        return f"Invalid {field_name}: '{value}'. Allowed: {sorted(allowed)}"
    return None


def _string_list(value, field_name):
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationError(f"{field_name} must be a list", details={field_name: "not a list"})
    return [str(v).strip() for v in value if str(v).strip()]


# ── Projects ─────────────────────────────────────────────────────────────────

def create_project(*, phone_number: str, data: dict | None = None) -> Project:
    """Create a project for ``phone_number``.

    ``data`` may carry client_id, title, description, tech_stack, features,
    start_date, end_date, budget_amount, budget_currency, status and
    requirements ([{category, description, priority}]).
    """
    data = data or {}
    phone_number = (phone_number or "").strip()
    if not phone_number:
        raise ValidationError("phone_number is required", details={"phone_number": "required"})

    errors = {}
    status = data.get("status") or "draft"
    err = _validate_enum(status, PROJECT_STATUSES, "status")
    if err:
        errors["status"] = err

    dates = {}
    for key in ("start_date", "end_date"):
        try:
            dates[key] = parse_date(data.get(key))
        except ValueError as exc:
            errors[key] = str(exc)

    client_id = data.get("client_id")
    if client_id is not None:
        try:
            client_id = int(client_id)
        except (TypeError, ValueError):
            errors["client_id"] = "client_id must be an integer"

    budget_amount = data.get("budget_amount")
    if budget_amount is not None:
        try:
            budget_amount = float(budget_amount)
        except (TypeError, ValueError):
            errors["budget_amount"] = "budget_amount must be a number"

    requirements = data.get("requirements") or []
    for index, req in enumerate(requirements):
        if not isinstance(req, dict) or not (req.get("description") or "").strip():
            errors[f"requirements[{index}]"] = "description is required"
            continue
        err = _validate_enum(req.get("priority"), REQUIREMENT_PRIORITIES, "priority")
        if err:
            errors[f"requirements[{index}]"] = err

    if errors:
        raise ValidationError("Invalid project data", details=errors)

    project = Project(
        client_id=client_id,
        phone_number=phone_number,
        title=(data.get("title") or "New Project").strip(),
        description=data.get("description"),
        tech_stack=_string_list(data.get("tech_stack"), "tech_stack"),
        features=_string_list(data.get("features"), "features"),
        start_date=dates["start_date"],
        end_date=dates["end_date"],
        budget_amount=budget_amount,
        budget_currency=(data.get("budget_currency") or DEFAULT_CURRENCY).upper(),
        status=status,
    )
    db.session.add(project)
    for req in requirements:
        db.session.add(ProjectRequirement(
            project=project,
            category=req.get("category"),
            description=req["description"].strip(),
            priority=req.get("priority") or "medium",
        ))
    commit_or_rollback()
    logger.info("Project %s created for %s [%s]", project.id, phone_number, status,
                extra={"project_id": project.id})
    return project


def get_project(project_id: int) -> Project:
    project = db.session.get(Project, project_id)
    if project is None:
        raise NotFoundError(resource="Project", resource_id=project_id)
    return project


def list_projects(*, phone_number: str | None = None, status: str | None = None,
                  client_id: int | None = None, limit: int = LIST_LIMIT) -> list[Project]:
    """Projects newest first, optionally filtered."""
    err = _validate_enum(status, PROJECT_STATUSES, "status")
    if err:
        raise ValidationError(err, details={"status": err})

    stmt = select(Project)
    if phone_number:
        stmt = stmt.where(Project.phone_number == phone_number)
    if status:
        stmt = stmt.where(Project.status == status)
    if client_id is not None:
        stmt = stmt.where(Project.client_id == client_id)
    stmt = stmt.order_by(Project.created_at.desc(), Project.id.desc()).limit(limit)
    return list(db.session.execute(stmt).scalars())


def find_active_project(phone_number: str) -> Project | None:
    """Most recently updated project with an open chat for ``phone_number``."""
    stmt = (
        select(Project)
        .where(Project.phone_number == phone_number, Project.status.in_(ACTIVE_CHAT_STATUSES))
        .order_by(Project.updated_at.desc(), Project.id.desc())
        .limit(1)
    )
    return db.session.execute(stmt).scalars().first()


# ── Conversation transcript ──────────────────────────────────────────────────

def conversation_messages(project: Project) -> list[dict]:
    """Transcript as ordered chat messages."""
    return [turn.to_message() for turn in project.conversation.all()]


def append_turns(project: Project, turns: list[tuple]) -> list[ConversationTurn]:
    """Append (role, content[, timestamp]) turns in order and commit them together."""
    next_seq = db.session.execute(
        select(func.coalesce(func.max(ConversationTurn.seq), 0))
        .where(ConversationTurn.project_id == project.id)
    ).scalar_one()

    for role, *_ in turns:
        if role not in TURN_ROLES:
            raise ValidationError(f"Invalid role: '{role}'", details={"role": role})

    created = []
    for role, content, *rest in turns:
        next_seq += 1
        turn = ConversationTurn(
            project_id=project.id,
            seq=next_seq,
            role=role,
            content=content,
            timestamp=rest[0] if rest else datetime.now(timezone.utc),
        )
        db.session.add(turn)
        created.append(turn)
    project.updated_at = datetime.now(timezone.utc)
    commit_or_rollback()
    return created


def apply_captured_requirements(project: Project, captured) -> Project:
    """Merge captured tech stack / features into the project."""
    project.tech_stack = list(dict.fromkeys([*(project.tech_stack or []), *captured.tech_stack]))
    project.features = list(dict.fromkeys([*(project.features or []), *captured.features]))
    if captured.scope and not project.description:
        project.description = captured.scope
    commit_or_rollback()
    logger.info("Applied captured requirements to project %s", project.id,
                extra={"project_id": project.id})
    return project


# ── Documentation ────────────────────────────────────────────────────────────

def build_brief(project: Project) -> ProjectBrief:
    return ProjectBrief(
        title=project.title,
        description=project.description or "",
        requirements=[r.to_dict() for r in project.requirements.all()],
        tech_stack=list(project.tech_stack or []),
        features=list(project.features or []),
        start_date=project.start_date,
        end_date=project.end_date,
        budget_amount=project.budget_amount,
        budget_currency=project.budget_currency or DEFAULT_CURRENCY,
    )


def save_documentation(project: Project, artifact) -> Project:
    """Replace the stored artifact and move the project to ``documentation``."""
    db.session.execute(
        delete(DocumentationSection).where(DocumentationSection.project_id == project.id)
    )
    for section in artifact.sections:
        db.session.add(DocumentationSection(
            project_id=project.id,
            position=SECTION_KINDS.index(section["section"]),
            kind=section["section"],
            content=section["content"],
            generated_at=section["generated_at"],
        ))
    project.full_document = artifact.full_document
    project.documentation_generated_at = artifact.generated_at
    project.documentation_version = artifact.version
    project.status = "documentation"
    commit_or_rollback()
    logger.info("Documentation v%d stored for project %s", artifact.version, project.id,
                extra={"project_id": project.id})
    return project


def generate_documentation(project_id: int, pipeline) -> dict:
    """Run the documentation pipeline and persist the artifact.

    Nothing is written unless every stage succeeds.
    """
    project = get_project(project_id)
    artifact = pipeline.run(build_brief(project),
                            previous_version=project.documentation_version or 0)
    save_documentation(project, artifact)
    return project.documentation_to_dict()
