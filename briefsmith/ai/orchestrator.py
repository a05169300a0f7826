"""
Briefsmith
Documentation Pipeline.

Runs the stage descriptors from ``briefsmith.ai.stages`` strictly in order,
threading each typed result forward as context for the next stage's prompt.

Each stage issues exactly one gateway call and passes the raw text through
the recovery parser. A parse failure or non-object result aborts the run
with StageFailure; ProviderUnavailable from the gateway propagates as is.
Nothing is persisted here: the caller stores the returned artifact.
"""

import logging
from datetime import datetime, timezone

from briefsmith.ai.documentation import PipelineArtifact, assemble_sections
from briefsmith.ai.parser import parse_llm_json
from briefsmith.ai.stages import STAGES, ProjectBrief, StageSpec
from briefsmith.core.exceptions import ParseError, StageFailure

logger = logging.getLogger(__name__)


class DocumentationPipeline:
    """
    Reader → Searcher → BudgetEstimator → Writer → Verifier.

    Usage:
        pipeline = DocumentationPipeline(gateway, prompt_registry)
        artifact = pipeline.run(brief, previous_version=project.documentation_version or 0)
    """

    def __init__(self, gateway, prompt_registry, stages: tuple[StageSpec, ...] = STAGES):
        self.gateway = gateway
        self.prompts = prompt_registry
        self.stages = tuple(stages)
        self._by_name = {s.name: s for s in self.stages}

    def list_stages(self) -> list[dict]:
        return [{"stage": s.name, "depends_on": list(s.depends_on)} for s in self.stages]

    def run_stage(self, name: str, context: dict):
        """
        Execute a single stage against ``context``.

        ``context`` maps "project" to a ProjectBrief and earlier stage names
        to their results, so any stage can be run alone with fixtures.

        Raises:
            KeyError: unknown stage name.
            ValueError: a declared dependency is missing from ``context``.
            StageFailure: output could not be parsed into an object.
            ProviderUnavailable: no backend produced a response.
        """
        spec = self._by_name.get(name)
        if spec is None:
            raise KeyError(f"Unknown pipeline stage: {name}")
        missing = [dep for dep in spec.depends_on if dep not in context]
        if missing:
            raise ValueError(f"Stage '{name}' requires context: {', '.join(missing)}")

        messages = spec.build_messages(self.prompts, context)
        response = self.gateway.complete(messages, spec.options)
        logger.info("Stage %s completed via %s (cache_hit=%s)", name,
                    response.get("provider"), response.get("cache_hit"),
                    extra={"stage": name, "provider": response.get("provider")})

        try:
            data = parse_llm_json(response["content"])
        except ParseError as e:
            logger.error("Stage %s output unparseable: %s", name, e, extra={"stage": name})
            raise StageFailure(name, e) from e
        if not isinstance(data, dict):
            cause = TypeError(f"expected a JSON object, got {type(data).__name__}")
            logger.error("Stage %s output has wrong shape: %s", name, cause, extra={"stage": name})
            raise StageFailure(name, cause)

        result = spec.result_type.from_dict(data)
        if spec.finalize is not None:
            result = spec.finalize(result, context)
        return result

    def run(self, brief: ProjectBrief, previous_version: int = 0) -> PipelineArtifact:
        """
        Execute every stage in order and assemble the artifact.

        Args:
            brief: The project as the stages see it.
            previous_version: Version of the artifact currently stored (0 if none).

        Returns:
            PipelineArtifact with ``version = previous_version + 1``.
        """
        context: dict = {"project": brief}
        for spec in self.stages:
            logger.debug("Running stage %s", spec.name, extra={"stage": spec.name})
            context[spec.name] = self.run_stage(spec.name, context)

        generated_at = datetime.now(timezone.utc)
        artifact = PipelineArtifact(
            sections=assemble_sections(context["writer"], generated_at),
            generated_at=generated_at,
            version=(previous_version or 0) + 1,
            verification=context.get("verifier"),
        )
        logger.info("Documentation pipeline finished: %d sections, version %d",
                    len(artifact.sections), artifact.version)
        return artifact
