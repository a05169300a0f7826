"""Requirements blueprint.

Endpoints:
    POST /api/v1/requirements/capture
        {"conversation_history": [{"role", "content"}, ...]}
        or {"project_id": 7}  (uses the stored transcript and merges the
        captured tech stack / features into the project)
"""

import logging

from flask import Blueprint, jsonify

from briefsmith.blueprints import first_of, get_requirement_capture, json_body, register_error_handlers
from briefsmith.models.project import TURN_ROLES
from briefsmith.services import project_service
from briefsmith.utils.errors import E, api_error

logger = logging.getLogger(__name__)

requirements_bp = Blueprint("requirements", __name__, url_prefix="/api/v1/requirements")
register_error_handlers(requirements_bp)


def _validate_history(history):
    if not isinstance(history, list) or not history:
        return "conversation_history must be a non-empty list"
    for index, msg in enumerate(history):
        if not isinstance(msg, dict) or msg.get("role") not in TURN_ROLES or not msg.get("content"):
            return f"conversation_history[{index}] needs a role in {list(TURN_ROLES)} and content"
    return None


@requirements_bp.route("/capture", methods=["POST"])
def capture():
    data = json_body()
    project_id = first_of(data, "project_id", "projectId")
    capture_assistant = get_requirement_capture()

    if project_id is not None:
        try:
            project_id = int(project_id)
        except (TypeError, ValueError):
            return api_error(E.VALIDATION_INVALID, "project_id must be an integer")
        project = project_service.get_project(project_id)
        history = project_service.conversation_messages(project)
        if not history:
            return api_error(E.VALIDATION_INVALID, "Project has no conversation yet")
        captured = capture_assistant.capture_requirements(history)
        project_service.apply_captured_requirements(project, captured)
        return jsonify({"project_id": project.id, "requirements": captured.to_dict()}), 200

    history = first_of(data, "conversation_history", "conversationHistory")
    err = _validate_history(history)
    if err:
        return api_error(E.VALIDATION_REQUIRED, err)
    captured = capture_assistant.capture_requirements(history)
    return jsonify({"requirements": captured.to_dict()}), 200
