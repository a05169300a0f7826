"""
Shared pytest fixtures for the Briefsmith test suite.

Provides:
    - app: Flask application (session-scoped, SQLite in-memory)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB reset + AI singleton reset (autouse)
    - client: Flask test client
    - stage_payloads: One well-formed response object per pipeline stage
    - make_gateway: Factory for a scripted gateway, installed on the app
    - project: Pre-created Project entity
"""

import json

import pytest

from briefsmith import create_app
from briefsmith.models import db as _db


class ScriptedGateway:
    """Gateway stand-in: returns queued responses in order, records calls."""

    def __init__(self, responses=None, error=None):
        self.responses = list(responses or [])
        self.error = error
        self.calls = []

    def complete(self, messages, options=None):
        self.calls.append({"messages": messages, "options": options})
        if self.error is not None:
            raise self.error
        content = self.responses.pop(0)
        if isinstance(content, Exception):
            raise content
        if not isinstance(content, str):
            content = json.dumps(content)
        return {"content": content, "provider": "scripted",
                "cache_hit": False, "fallback_used": False, "latency_ms": 0}


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: app context, then rollback, recreate tables, drop AI singletons."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()
    for attr in [a for a in vars(app) if a.startswith("_ai_")]:
        delattr(app, attr)


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── AI fixtures ──────────────────────────────────────────────────────────


@pytest.fixture()
def stage_payloads():
    """Well-formed stage outputs keyed by stage name."""
    return {
        "reader": {
            "coreObjectives": ["Sell handmade goods online"],
            "technicalComplexity": "medium",
            "keyDependencies": ["Payment gateway"],
            "riskFactors": ["Tight deadline"],
            "resourceRequirements": {"teamSize": 3, "timeline": "3 months",
                                     "skills": ["React", "Node.js"]},
        },
        "searcher": {
            "architecturalPatterns": ["Layered REST API"],
            "apiDesignPatterns": ["Resource-oriented REST"],
            "databaseSchemaPatterns": ["Embedded line items"],
            "securityConsiderations": ["JWT auth"],
            "scalabilityApproaches": ["Horizontal API scaling"],
        },
        "budget_estimator": {
            "totalBudget": 500000,
            "currency": "INR",
            "breakdown": [
                {"category": "Development", "amount": 300000, "percentage": 60,
                 "description": "Frontend and backend"},
                {"category": "Testing", "amount": 200000, "percentage": 40,
                 "description": "QA"},
            ],
            "phases": [
                {"name": "Build", "budget": 400000, "duration": "10 weeks",
                 "description": "Core features"},
            ],
            "assumptions": ["Client provides content"],
        },
        "writer": {
            "projectOverview": "An online craft store.",
            "technicalArchitecture": "React SPA with an Express API.",
            "apiEndpoints": "GET /api/products",
            "databaseSchema": "products, orders",
            "implementationTimeline": "12 weeks",
            "techStackDetails": "MongoDB, Express.js, React, Node.js",
            "featuresBreakdown": "Catalogue, cart, checkout",
            "budgetEstimation": "About 5 lakh INR.",
        },
        "verifier": {
            "completeness": 0.9,
            "technicalAccuracy": "Good",
            "consistency": "Consistent",
            "missingInformation": [],
            "areasNeedingClarification": [],
        },
    }


@pytest.fixture()
def make_gateway(app):
    """Build a ScriptedGateway and install it as the app's gateway."""
    def _make(responses=None, error=None):
        gateway = ScriptedGateway(responses, error)
        app._ai_gateway = gateway
        return gateway
    return _make


@pytest.fixture()
def pipeline_gateway(make_gateway, stage_payloads):
    """Scripted gateway answering one full pipeline run."""
    order = ("reader", "searcher", "budget_estimator", "writer", "verifier")
    return make_gateway([stage_payloads[name] for name in order])


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def project():
    """Project with a short requirements transcript."""
    from briefsmith.services import project_service

    proj = project_service.create_project(
        phone_number="+919800000001",
        data={
            "title": "Craft Store",
            "description": "Online store for handmade goods",
            "tech_stack": ["React"],
            "features": ["Catalogue", "Checkout"],
            "start_date": "2026-01-01",
            "end_date": "2026-03-31",
            "status": "requirements_capture",
            "requirements": [
                {"category": "payments", "description": "Accept UPI", "priority": "high"},
            ],
        },
    )
    project_service.append_turns(proj, [
        ("user", "I want an online store for my crafts"),
        ("assistant", "Great! What is your timeline?"),
    ])
    return proj
