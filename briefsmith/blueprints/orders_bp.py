"""Orders blueprint: requirements chat and documentation generation.

Endpoints:
    POST /api/v1/orders                                   start or continue a chat
    POST /api/v1/orders/<project_id>/message              conversational reply
    POST /api/v1/orders/<project_id>/generate-documentation  run the pipeline
    GET  /api/v1/orders/<project_id>                      project details
    GET  /api/v1/orders/phone/<phone_number>              latest active chat
    GET  /api/v1/orders                                   list (phone_number, status, client_id)

Request bodies accept snake_case or camelCase keys.
Service layer owns all business logic and commits.
"""

import logging

from flask import Blueprint, jsonify, request

from briefsmith.blueprints import (
    first_of,
    get_pipeline,
    get_responder,
    json_body,
    register_error_handlers,
)
from briefsmith.services import project_service
from briefsmith.utils.errors import E, api_error

logger = logging.getLogger(__name__)

orders_bp = Blueprint("orders", __name__, url_prefix="/api/v1/orders")
register_error_handlers(orders_bp)


@orders_bp.route("", methods=["POST"])
def start_order():
    """Continue the phone number's open chat, or open a new one."""
    data = json_body()
    phone_number = first_of(data, "phone_number", "phoneNumber")
    message = first_of(data, "initial_message", "initialMessage")
    if not phone_number:
        return api_error(E.VALIDATION_REQUIRED, "phone_number is required")
    if not message:
        return api_error(E.VALIDATION_REQUIRED, "initial_message is required")

    responder = get_responder()
    existing = project_service.find_active_project(str(phone_number))
    if existing is not None:
        reply = responder.respond_to_message(existing.id, message)
        return jsonify({
            "project_id": existing.id,
            "response": reply,
            "is_existing_chat": True,
        }), 200

    client_id = first_of(data, "client_id", "clientId")
    result = responder.process_order(str(phone_number), message, client_id=client_id)
    return jsonify({**result, "is_existing_chat": False}), 201


@orders_bp.route("/<int:project_id>/message", methods=["POST"])
def post_message(project_id):
    message = first_of(json_body(), "message")
    if not message:
        return api_error(E.VALIDATION_REQUIRED, "message is required")
    reply = get_responder().respond_to_message(project_id, message)
    return jsonify({"response": reply}), 200


@orders_bp.route("/<int:project_id>/generate-documentation", methods=["POST"])
def generate_documentation(project_id):
    documentation = project_service.generate_documentation(project_id, get_pipeline())
    return jsonify({"documentation": documentation}), 200


@orders_bp.route("/<int:project_id>", methods=["GET"])
def get_order(project_id):
    project = project_service.get_project(project_id)
    return jsonify({"project": project.to_dict(include_conversation=True)}), 200


@orders_bp.route("/phone/<phone_number>", methods=["GET"])
def get_active_chat(phone_number):
    project = project_service.find_active_project(phone_number)
    if project is None:
        return api_error(E.NOT_FOUND, "No active chat found for this phone number")
    return jsonify({"project": project.to_dict(include_conversation=True)}), 200


@orders_bp.route("", methods=["GET"])
def list_orders():
    projects = project_service.list_projects(
        phone_number=request.args.get("phone_number") or request.args.get("phoneNumber"),
        status=request.args.get("status"),
        client_id=request.args.get("client_id", type=int) or request.args.get("clientId", type=int),
    )
    return jsonify({"projects": [p.to_dict() for p in projects]}), 200
