"""
Briefsmith
Conversational Responder.

Single-turn side channel for requirements capture:
    - Persona system prompt + full persisted transcript + new user message
    - One gateway call (temperature 0.7, 500 tokens), reply returned verbatim
    - User and assistant turns persisted together after a successful reply

No parsing and no pipeline stages are involved.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from briefsmith.ai.gateway import CompletionOptions
from briefsmith.core.exceptions import ValidationError
from briefsmith.services import project_service

logger = logging.getLogger(__name__)

RESPONSE_OPTIONS = CompletionOptions(temperature=0.7, max_tokens=500)


def _require_message(message):
    if message is not None and not isinstance(message, str):
        raise ValidationError("message must be a string", details={"message": "invalid"})
    if not message or not message.strip():
        raise ValidationError("message is required", details={"message": "required"})


class ConversationResponder:
    """Replies to client messages on a project's requirements chat."""

    def __init__(self, gateway=None, prompt_registry=None):
        self.gateway = gateway
        self.prompt_registry = prompt_registry

    def respond_to_message(self, project_id: int, message: str) -> str:
        """
        Append ``message`` to the project's transcript and reply to it.

        Raises:
            NotFoundError: unknown project.
            ValidationError: empty message.
            ProviderUnavailable: no backend replied; nothing is persisted.
        """
        project = project_service.get_project(project_id)
        return self._reply(project, message)

    def process_order(self, phone_number: str, initial_message: str,
                      client_id: int | None = None) -> dict:
        """
        Open a new requirements chat and answer its first message.

        Returns:
            dict: project_id, response
        """
        _require_message(initial_message)
        project = project_service.create_project(
            phone_number=phone_number,
            data={"client_id": client_id, "status": "requirements_capture"},
        )
        response = self._reply(project, initial_message)
        return {"project_id": project.id, "response": response}

    def _reply(self, project, message: str) -> str:
        _require_message(message)
        received_at = datetime.now(timezone.utc)
        messages = [
            *self.prompt_registry.render("persona"),
            *project_service.conversation_messages(project),
            {"role": "user", "content": message},
        ]
        result = self.gateway.complete(messages, RESPONSE_OPTIONS)
        reply = result["content"]

        project_service.append_turns(project, [
            ("user", message, received_at),
            ("assistant", reply),
        ])
        logger.info("Replied on project %s via %s", project.id, result["provider"],
                    extra={"project_id": project.id, "provider": result["provider"]})
        return reply
