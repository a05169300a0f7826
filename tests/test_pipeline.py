"""
Tests — Documentation pipeline and artifact persistence.

Covers:
    - stage order, per-stage options and context threading
    - budget section synthesized when the writer omits it
    - low-completeness warning
    - StageFailure on unparseable / non-object output; nothing persisted
    - single-stage execution with fixtures
    - generate_documentation versioning and section replacement
"""

import logging

import pytest

from briefsmith.ai.orchestrator import DocumentationPipeline
from briefsmith.ai.prompt_registry import PromptRegistry
from briefsmith.ai.stages import ProjectBrief, ReaderResult
from briefsmith.core.exceptions import ProviderUnavailable, StageFailure
from briefsmith.models import db
from briefsmith.models.project import DocumentationSection
from briefsmith.services import project_service

STAGE_ORDER = ("reader", "searcher", "budget_estimator", "writer", "verifier")


def _pipeline(gateway):
    return DocumentationPipeline(gateway, PromptRegistry())


def _brief():
    return ProjectBrief(
        title="Craft Store",
        description="Online store for handmade goods",
        requirements=[{"category": "payments", "description": "Accept UPI",
                       "priority": "high"}],
        tech_stack=["React"],
        features=["Catalogue"],
    )


# ═════════════════════════════════════════════════════════════════════════════
# Orchestration
# ═════════════════════════════════════════════════════════════════════════════

class TestPipelineRun:

    def test_five_calls_in_order_with_stage_options(self, pipeline_gateway):
        artifact = _pipeline(pipeline_gateway).run(_brief())

        assert len(pipeline_gateway.calls) == 5
        options = [(c["options"].temperature, c["options"].max_tokens)
                   for c in pipeline_gateway.calls]
        assert options == [(0.3, 1500), (0.3, 1500), (0.3, 2000), (0.5, 4000), (0.3, 1000)]
        assert artifact.version == 1
        assert len(artifact.sections) == 8

    def test_prompts_carry_earlier_results(self, pipeline_gateway):
        _pipeline(pipeline_gateway).run(_brief())
        calls = pipeline_gateway.calls
        reader_user = calls[0]["messages"][-1]["content"]
        searcher_user = calls[1]["messages"][-1]["content"]
        writer_user = calls[3]["messages"][-1]["content"]
        verifier_user = calls[4]["messages"][-1]["content"]

        assert "Project Title: Craft Store" in reader_user
        assert "Accept UPI" in reader_user
        assert "Sell handmade goods online" in searcher_user
        assert "Layered REST API" in writer_user
        assert "500000" in writer_user
        assert "# overview\n\nAn online craft store." in verifier_user

    def test_version_increments(self, pipeline_gateway):
        assert _pipeline(pipeline_gateway).run(_brief(), previous_version=4).version == 5

    def test_budget_section_synthesized(self, make_gateway, stage_payloads):
        writer = {k: v for k, v in stage_payloads["writer"].items() if k != "budgetEstimation"}
        gateway = make_gateway([stage_payloads["reader"], stage_payloads["searcher"],
                                stage_payloads["budget_estimator"], writer,
                                stage_payloads["verifier"]])
        artifact = _pipeline(gateway).run(_brief())

        budget = artifact.sections[-1]
        assert budget["section"] == "budget_estimation"
        assert budget["content"].startswith("## Budget Estimation")
        assert "**Total Estimated Budget:** 500000 INR" in budget["content"]
        assert "## Budget Estimation" in gateway.calls[4]["messages"][-1]["content"]

    def test_fenced_output_accepted(self, make_gateway, stage_payloads):
        import json
        fenced = [f"Here you go:\n```json\n{json.dumps(stage_payloads[n])}\n```"
                  for n in STAGE_ORDER]
        artifact = _pipeline(make_gateway(fenced)).run(_brief())
        assert artifact.sections[0]["content"] == "An online craft store."

    def test_low_completeness_logs_warning(self, make_gateway, stage_payloads, caplog):
        responses = [stage_payloads[n] for n in STAGE_ORDER]
        responses[-1] = {**stage_payloads["verifier"], "completeness": 0.4}
        with caplog.at_level(logging.WARNING, logger="briefsmith.ai.stages"):
            artifact = _pipeline(make_gateway(responses)).run(_brief())
        assert artifact.verification.completeness == 0.4
        assert any("completeness" in r.getMessage() for r in caplog.records)


class TestPipelineFailures:

    def test_unparseable_stage_aborts(self, make_gateway, stage_payloads):
        gateway = make_gateway([stage_payloads["reader"], "I cannot help with that."])
        with pytest.raises(StageFailure) as exc_info:
            _pipeline(gateway).run(_brief())
        assert exc_info.value.stage == "searcher"
        assert len(gateway.calls) == 2

    def test_non_object_output_aborts(self, make_gateway):
        gateway = make_gateway([["just", "a", "list"]])
        with pytest.raises(StageFailure) as exc_info:
            _pipeline(gateway).run(_brief())
        assert exc_info.value.stage == "reader"

    def test_provider_unavailable_propagates(self, make_gateway):
        gateway = make_gateway(error=ProviderUnavailable([]))
        with pytest.raises(ProviderUnavailable):
            _pipeline(gateway).run(_brief())


class TestRunStage:

    def test_single_stage_with_fixture_context(self, make_gateway, stage_payloads):
        gateway = make_gateway([stage_payloads["searcher"]])
        context = {"project": _brief(),
                   "reader": ReaderResult.from_dict(stage_payloads["reader"])}
        result = _pipeline(gateway).run_stage("searcher", context)
        assert result.architectural_patterns == ["Layered REST API"]

    def test_missing_dependency(self, make_gateway):
        with pytest.raises(ValueError):
            _pipeline(make_gateway([])).run_stage("writer", {"project": _brief()})

    def test_unknown_stage(self, make_gateway):
        with pytest.raises(KeyError):
            _pipeline(make_gateway([])).run_stage("reviewer", {})

    def test_list_stages(self, make_gateway):
        stages = _pipeline(make_gateway([])).list_stages()
        assert [s["stage"] for s in stages] == list(STAGE_ORDER)
        assert stages[3]["depends_on"] == ["project", "reader", "searcher", "budget_estimator"]


# ═════════════════════════════════════════════════════════════════════════════
# Persistence
# ═════════════════════════════════════════════════════════════════════════════

class TestGenerateDocumentation:

    def test_artifact_persisted(self, project, pipeline_gateway):
        doc = project_service.generate_documentation(project.id, _pipeline(pipeline_gateway))

        assert doc["version"] == 1
        assert [s["section"] for s in doc["sections"]][0] == "overview"
        assert doc["full_document"].startswith("# overview")
        refreshed = project_service.get_project(project.id)
        assert refreshed.status == "documentation"
        assert refreshed.documentation_sections.count() == 8

    def test_brief_uses_project_timeline(self, project, pipeline_gateway):
        project_service.generate_documentation(project.id, _pipeline(pipeline_gateway))
        budget_prompt = pipeline_gateway.calls[2]["messages"][-1]["content"]
        assert "Timeline: 89 days" in budget_prompt

    def test_regeneration_replaces_sections(self, project, make_gateway, stage_payloads):
        responses = [stage_payloads[n] for n in STAGE_ORDER]
        project_service.generate_documentation(project.id,
                                               _pipeline(make_gateway(list(responses))))

        shorter = dict(responses[3])
        shorter.pop("apiEndpoints")
        responses[3] = shorter
        doc = project_service.generate_documentation(project.id, _pipeline(make_gateway(responses)))

        assert doc["version"] == 2
        assert "api_endpoints" not in [s["section"] for s in doc["sections"]]
        assert db.session.query(DocumentationSection).filter_by(project_id=project.id).count() == 7

    def test_failed_run_persists_nothing(self, project, make_gateway, stage_payloads):
        gateway = make_gateway([stage_payloads["reader"], stage_payloads["searcher"],
                                stage_payloads["budget_estimator"], "not json"])
        with pytest.raises(StageFailure):
            project_service.generate_documentation(project.id, _pipeline(gateway))

        refreshed = project_service.get_project(project.id)
        assert refreshed.documentation_version is None
        assert refreshed.status == "requirements_capture"
        assert refreshed.documentation_to_dict() is None
