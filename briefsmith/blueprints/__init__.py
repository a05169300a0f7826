"""
Briefsmith
Blueprint registry and shared plumbing.

- Lazy per-app AI singletons (gateway, cache, prompts, pipeline, assistants)
- Shared domain-exception → JSON error handlers
- JSON body helper
"""

import logging

from flask import current_app, request
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from briefsmith.ai.assistants.requirement_capture import RequirementCapture
from briefsmith.ai.cache import ResponseCacheService
from briefsmith.ai.conversation import ConversationResponder
from briefsmith.ai.gateway import LLMGateway
from briefsmith.ai.orchestrator import DocumentationPipeline
from briefsmith.ai.prompt_registry import PromptRegistry
from briefsmith.core.exceptions import (
    NotFoundError,
    ParseError,
    ProviderUnavailable,
    StageFailure,
    ValidationError,
)
from briefsmith.utils.errors import E, api_error, is_production

logger = logging.getLogger(__name__)


# ── Lazy AI singletons (one per Flask app; tests assign fakes directly) ──────

def get_cache() -> ResponseCacheService:
    if not hasattr(current_app, "_ai_cache"):
        current_app._ai_cache = ResponseCacheService.from_url(
            current_app.config.get("REDIS_URL"),
            ttl_seconds=current_app.config.get("LLM_CACHE_TTL_SECONDS", 3600),
        )
    return current_app._ai_cache


def get_gateway() -> LLMGateway:
    if not hasattr(current_app, "_ai_gateway"):
        current_app._ai_gateway = LLMGateway.from_config(current_app.config, cache=get_cache())
    return current_app._ai_gateway


def get_prompt_registry() -> PromptRegistry:
    if not hasattr(current_app, "_ai_prompt_registry"):
        current_app._ai_prompt_registry = PromptRegistry(current_app.config.get("PROMPTS_DIR"))
    return current_app._ai_prompt_registry


def get_pipeline() -> DocumentationPipeline:
    if not hasattr(current_app, "_ai_pipeline"):
        current_app._ai_pipeline = DocumentationPipeline(get_gateway(), get_prompt_registry())
    return current_app._ai_pipeline


def get_responder() -> ConversationResponder:
    if not hasattr(current_app, "_ai_responder"):
        current_app._ai_responder = ConversationResponder(
            gateway=get_gateway(),
            prompt_registry=get_prompt_registry(),
        )
    return current_app._ai_responder


def get_requirement_capture() -> RequirementCapture:
    if not hasattr(current_app, "_ai_requirement_capture"):
        current_app._ai_requirement_capture = RequirementCapture(
            gateway=get_gateway(),
            prompt_registry=get_prompt_registry(),
        )
    return current_app._ai_requirement_capture


# ── Request helpers ──────────────────────────────────────────────────────────

def json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def first_of(data: dict, *keys):
    """First non-empty value among snake_case / camelCase spellings."""
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return value
    return None


# ── Error handlers ───────────────────────────────────────────────────────────

def register_error_handlers(bp):
    """Map domain exceptions raised below ``bp`` to JSON error responses."""

    @bp.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        return api_error(E.NOT_FOUND, str(error))

    @bp.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        return api_error(E.VALIDATION_INVALID, str(error), details=error.details)

    @bp.errorhandler(StageFailure)
    def _handle_stage_failure(error: StageFailure):
        logger.error("Documentation pipeline aborted at stage %s: %s", error.stage, error,
                     extra={"stage": error.stage})
        return api_error(E.STAGE_FAILED, str(error), details={"stage": error.stage}, exc=error)

    @bp.errorhandler(ParseError)
    def _handle_parse_error(error: ParseError):
        logger.error("Unparseable LLM output: %s", error)
        return api_error(E.PARSE_FAILED, str(error), exc=error)

    @bp.errorhandler(ProviderUnavailable)
    def _handle_provider_unavailable(error: ProviderUnavailable):
        return api_error(E.PROVIDER_UNAVAILABLE, str(error),
                         details={"attempted": error.attempted}, exc=error)

    @bp.errorhandler(SQLAlchemyError)
    def _handle_db_error(error: SQLAlchemyError):
        logger.exception("Database error in %s endpoint=%s", bp.name, request.endpoint)
        message = "Database error" if is_production() else str(error)
        return api_error(E.DATABASE, message, exc=error)

    @bp.errorhandler(Exception)
    def _handle_unexpected(error: Exception):
        if isinstance(error, HTTPException):
            code = E.RATE_LIMITED if error.code == 429 else E.BAD_REQUEST
            return api_error(code, error.description, status=error.code)
        logger.exception("Unexpected error in %s endpoint=%s", bp.name, request.endpoint)
        message = "Internal server error" if is_production() else str(error)
        return api_error(E.INTERNAL, message, exc=error)
