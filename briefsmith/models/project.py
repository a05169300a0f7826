"""
Briefsmith
Project domain models.

Models:
    - Project: A client order captured through conversation, carrying the
      generated documentation artifact (sections + full document + version)
    - ProjectRequirement: Categorised requirement line on a project
    - ConversationTurn: One message of the running requirements transcript
    - DocumentationSection: One generated section of the documentation artifact
"""

from datetime import datetime, timezone

from briefsmith.models import db


# ── Constants ────────────────────────────────────────────────────────────────

PROJECT_STATUSES = (
    "draft", "requirements_capture", "documentation", "approved",
    "in_progress", "completed", "cancelled",
)
# A phone number with a project in one of these states has an open chat
ACTIVE_CHAT_STATUSES = ("draft", "requirements_capture")

REQUIREMENT_PRIORITIES = ("low", "medium", "high", "critical")
TURN_ROLES = ("user", "assistant", "system")

# Fixed section order of the documentation artifact
SECTION_KINDS = (
    "overview",
    "architecture",
    "api_endpoints",
    "database_schema",
    "timeline",
    "tech_stack",
    "features",
    "budget_estimation",
)

DEFAULT_CURRENCY = "INR"


def _utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


class Project(db.Model):
    """Client order whose conversation feeds the documentation pipeline."""

    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.Integer, nullable=True, index=True,
                          comment="Owning client in the CRM, when known")
    phone_number = db.Column(db.String(30), nullable=False, index=True)
    title = db.Column(db.String(300), nullable=False, default="New Project")
    description = db.Column(db.Text, nullable=True)
    tech_stack = db.Column(db.JSON, default=list)
    features = db.Column(db.JSON, default=list)

    # Timeline
    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)

    # Budget hint from the client
    budget_amount = db.Column(db.Float, nullable=True)
    budget_currency = db.Column(db.String(3), default=DEFAULT_CURRENCY)

    status = db.Column(db.String(30), nullable=False, default="draft")

    # Documentation artifact header; sections live in documentation_sections
    full_document = db.Column(db.Text, nullable=True,
                              comment="Derived concatenation of sections in kind order")
    documentation_generated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    documentation_version = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    requirements = db.relationship(
        "ProjectRequirement", backref="project", cascade="all, delete-orphan",
        order_by="ProjectRequirement.id", lazy="dynamic",
    )
    conversation = db.relationship(
        "ConversationTurn", backref="project", cascade="all, delete-orphan",
        order_by="ConversationTurn.seq", lazy="dynamic",
    )
    documentation_sections = db.relationship(
        "DocumentationSection", backref="project", cascade="all, delete-orphan",
        order_by="DocumentationSection.position", lazy="dynamic",
    )

    __table_args__ = (
        db.CheckConstraint(
            "status IN ('draft','requirements_capture','documentation','approved',"
            "'in_progress','completed','cancelled')",
            name="ck_projects_status",
        ),
        db.Index("ix_projects_phone_status", "phone_number", "status"),
    )

    def documentation_to_dict(self):
        if self.documentation_version is None:
            return None
        return {
            "sections": [s.to_dict() for s in self.documentation_sections.all()],
            "full_document": self.full_document or "",
            "generated_at": _iso(self.documentation_generated_at),
            "version": self.documentation_version,
        }

    def to_dict(self, include_conversation=False):
        d = {
            "id": self.id,
            "client_id": self.client_id,
            "phone_number": self.phone_number,
            "title": self.title,
            "description": self.description,
            "requirements": [r.to_dict() for r in self.requirements.all()],
            "tech_stack": list(self.tech_stack or []),
            "features": list(self.features or []),
            "timeline": {
                "start_date": _iso(self.start_date),
                "end_date": _iso(self.end_date),
            },
            "budget": {
                "amount": self.budget_amount,
                "currency": self.budget_currency or DEFAULT_CURRENCY,
            },
            "status": self.status,
            "documentation": self.documentation_to_dict(),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if include_conversation:
            d["conversation"] = [t.to_dict() for t in self.conversation.all()]
        return d

    def __repr__(self):
        return f"<Project {self.id} [{self.status}] {self.title!r}>"


class ProjectRequirement(db.Model):
    """Requirement line captured for a project."""

    __tablename__ = "project_requirements"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
                           nullable=False, index=True)
    category = db.Column(db.String(100), nullable=True)
    description = db.Column(db.Text, nullable=False)
    priority = db.Column(db.String(20), nullable=False, default="medium")

    __table_args__ = (
        db.CheckConstraint(
            "priority IN ('low','medium','high','critical')",
            name="ck_project_req_priority",
        ),
    )

    def to_dict(self):
        return {
            "category": self.category,
            "description": self.description,
            "priority": self.priority,
        }


class ConversationTurn(db.Model):
    """One message in a project's requirements-capture transcript."""

    __tablename__ = "conversation_turns"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
                           nullable=False, index=True)
    seq = db.Column(db.Integer, nullable=False, comment="Turn sequence number (1-based)")
    role = db.Column(db.String(20), nullable=False, comment="user | assistant | system")
    content = db.Column(db.Text, nullable=False)
    timestamp = db.Column(db.DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        db.CheckConstraint(
            "role IN ('user','assistant','system')",
            name="ck_conversation_turn_role",
        ),
        db.UniqueConstraint("project_id", "seq", name="uq_conversation_turn_seq"),
    )

    def to_message(self):
        """Chat-message form consumed by the LLM gateway."""
        return {"role": self.role, "content": self.content}

    def to_dict(self):
        return {
            "seq": self.seq,
            "role": self.role,
            "content": self.content,
            "timestamp": _iso(self.timestamp),
        }

    def __repr__(self):
        return f"<ConversationTurn project={self.project_id} seq={self.seq} role={self.role}>"


class DocumentationSection(db.Model):
    """A single generated section of the project documentation."""

    __tablename__ = "documentation_sections"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
                           nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, comment="Index of kind in SECTION_KINDS")
    kind = db.Column(db.String(30), nullable=False)
    content = db.Column(db.Text, nullable=False)
    generated_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        db.CheckConstraint(
            "kind IN ('overview','architecture','api_endpoints','database_schema',"
            "'timeline','tech_stack','features','budget_estimation')",
            name="ck_doc_section_kind",
        ),
        db.UniqueConstraint("project_id", "kind", name="uq_doc_section_kind"),
    )

    def to_dict(self):
        return {
            "section": self.kind,
            "content": self.content,
            "generated_at": _iso(self.generated_at),
        }
