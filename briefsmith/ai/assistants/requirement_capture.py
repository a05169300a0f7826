"""
Briefsmith
Requirement Capture Assistant.

Turns a free-form conversation into structured requirements:
    1. Render the capture prompt (system analyst prompt + extraction request)
    2. Wrap the conversation history between them
    3. One LLM call through the gateway (temperature 0.3, 2000 tokens)
    4. Recover the JSON object from the response
"""

import logging
from dataclasses import asdict, dataclass, field

from briefsmith.ai.gateway import CompletionOptions
from briefsmith.ai.parser import parse_llm_json
from briefsmith.core.exceptions import ParseError

logger = logging.getLogger(__name__)

CAPTURE_OPTIONS = CompletionOptions(temperature=0.3, max_tokens=2000)


@dataclass
class CapturedRequirements:
    tech_stack: list[str] = field(default_factory=list)
    features: list[str] = field(default_factory=list)
    timeline: str = ""
    budget: str = ""
    scope: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "CapturedRequirements":
        def as_list(value):
            if isinstance(value, list):
                return [str(v) for v in value if v]
            return [str(value)] if value else []

        def as_text(value):
            return "" if value is None else str(value)

        return cls(
            tech_stack=as_list(data.get("techStack") or data.get("tech_stack")),
            features=as_list(data.get("features")),
            timeline=as_text(data.get("timeline")),
            budget=as_text(data.get("budget")),
            scope=as_text(data.get("scope")),
        )

    def to_dict(self) -> dict:
        return asdict(self)


class RequirementCapture:
    """Structured requirements extraction from a conversation history."""

    def __init__(self, gateway=None, prompt_registry=None):
        self.gateway = gateway
        self.prompt_registry = prompt_registry

    def capture_requirements(self, history: list[dict]) -> CapturedRequirements:
        """
        Extract requirements from ``history`` (ordered role/content messages).

        Raises:
            ParseError: the response held no JSON object.
            ProviderUnavailable: no backend produced a response.
        """
        prompt = self.prompt_registry.render("requirements_capture")
        messages = [
            *(m for m in prompt if m["role"] == "system"),
            *({"role": m["role"], "content": m["content"]} for m in history),
            *(m for m in prompt if m["role"] != "system"),
        ]
        response = self.gateway.complete(messages, CAPTURE_OPTIONS)

        data = parse_llm_json(response["content"])
        if not isinstance(data, dict):
            raise ParseError(response["content"],
                             TypeError(f"expected a JSON object, got {type(data).__name__}"))

        captured = CapturedRequirements.from_dict(data)
        logger.info("Captured requirements: %d technologies, %d features",
                    len(captured.tech_stack), len(captured.features))
        return captured
