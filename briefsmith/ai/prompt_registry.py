"""
Briefsmith
Prompt Registry.

Every LLM call renders its messages from a named template:

    persona               conversational requirements specialist (system only)
    requirements_capture  structured extraction from a conversation
    reader, searcher, budget_estimator, writer, verifier
                          documentation pipeline stages

Placeholders use ``{{name}}``; unknown placeholders are left in place so a
missing variable is visible in the rendered prompt. Templates can be
replaced without a deploy by dropping ``<name>.yaml`` files (keys: name,
version, system, user) into PROMPTS_DIR.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_PLACEHOLDER_RE = re.compile(r"\{\{\s*(\w+)\s*\}\}")

JSON_ONLY = (
    "IMPORTANT: You MUST return ONLY valid JSON, no markdown, no explanations, "
    "no code blocks."
)


@dataclass(frozen=True)
class PromptTemplate:
    name: str
    system: str
    user: str = ""
    version: str = "v1"

    def render(self, **variables) -> list[dict]:
        """System and user messages; a part that renders blank is omitted."""
        def fill(text: str) -> str:
            return _PLACEHOLDER_RE.sub(
                lambda m: str(variables[m.group(1)]) if m.group(1) in variables else m.group(0),
                text,
            )

        parts = (("system", fill(self.system)), ("user", fill(self.user)))
        return [{"role": role, "content": text} for role, text in parts if text.strip()]


def _template_from_yaml(path: Path) -> PromptTemplate | None:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        logger.error("Skipping prompt file %s: %s", path.name, e)
        return None
    if not isinstance(data, dict):
        logger.warning("Skipping prompt file %s: not a mapping", path.name)
        return None
    return PromptTemplate(
        name=str(data.get("name") or path.stem),
        system=str(data.get("system") or ""),
        user=str(data.get("user") or ""),
        version=str(data.get("version") or "v1"),
    )


class PromptRegistry:
    """Built-in templates, optionally overridden from a directory of YAML files."""

    def __init__(self, prompts_dir: str | None = None):
        self._templates: dict[tuple[str, str], PromptTemplate] = {
            (tpl.name, tpl.version): tpl for tpl in _DEFAULT_TEMPLATES
        }
        if prompts_dir:
            self._load_overrides(Path(prompts_dir))

    def _load_overrides(self, directory: Path):
        if not directory.is_dir():
            logger.info("No prompt overrides at %s; using built-in prompts", directory)
            return
        for path in sorted(directory.glob("*.yaml")):
            tpl = _template_from_yaml(path)
            if tpl is not None:
                self._templates[(tpl.name, tpl.version)] = tpl
                logger.info("Prompt %s (%s) overridden from %s", tpl.name, tpl.version, path.name)

    def get(self, name: str, version: str = "v1") -> PromptTemplate | None:
        return self._templates.get((name, version))

    def render(self, name: str, version: str = "v1", **variables) -> list[dict]:
        """
        Raises:
            KeyError: no template with that name and version.
        """
        tpl = self.get(name, version)
        if tpl is None:
            raise KeyError(f"Prompt template not found: {name} {version}")
        return tpl.render(**variables)


# ── Built-in Default Templates ────────────────────────────────────────────────

_STACK_POLICY = (
    "Recommend MERN stack patterns (MongoDB, Express.js, React, Node.js) for web "
    "applications and React Native patterns for mobile applications. If different "
    "technologies are mentioned, suggest MERN stack alternatives."
)

_DEFAULT_TEMPLATES = [
    PromptTemplate(
        name="persona",
        # Conversational requirements specialist
        system=(
            "You are a friendly project requirements specialist. Help the client "
            "articulate their tech project needs through natural conversation.\n\n"
            "IMPORTANT: You MUST prefer and recommend MERN stack (MongoDB, Express.js, "
            "React, Node.js) for web applications and React Native for mobile "
            "applications. If the user mentions different technologies, gently guide "
            "them toward MERN stack and React Native by explaining the benefits:\n"
            "- MERN stack: Full JavaScript stack, faster development, large community, "
            "scalable, cost-effective\n"
            "- React Native: Code once, deploy to iOS and Android, shared codebase, "
            "native performance, faster development\n\n"
            "Ask clarifying questions about:\n"
            "- What they want to build\n"
            "- Timeline expectations\n"
            "- Budget considerations\n"
            "- Key features and functionality\n\n"
            "Always suggest MERN stack for web and React Native for mobile, but be "
            "respectful if they have strong preferences. Be conversational and helpful."
        ),
        user="",
    ),
    PromptTemplate(
        name="requirements_capture",
        # Extract structured requirements from a conversation
        system=(
            "You are an expert requirements analyst. Analyze the conversation to extract:\n"
            "1. Tech stack preferences\n"
            "2. Key features and functionality\n"
            "3. Timeline expectations\n"
            "4. Budget range\n"
            "5. Project scope and complexity\n\n"
            f"{JSON_ONLY} Return a JSON object with these fields:\n"
            "{\n"
            '  "techStack": ["tech1", "tech2"],\n'
            '  "features": ["feature1", "feature2"],\n'
            '  "timeline": "timeline description",\n'
            '  "budget": "budget description",\n'
            '  "scope": "scope description"\n'
            "}\n\n"
            "Return ONLY the JSON object, nothing else."
        ),
        user=(
            "Extract and structure the project requirements from this conversation. "
            "Return ONLY valid JSON, no markdown, no explanations, no code blocks."
        ),
    ),
    PromptTemplate(
        name="reader",
        # Stage 1: analyse project requirements
        system=(
            "You are a technical reader agent that analyzes project requirements. "
            "You MUST always return valid JSON only, never markdown or explanations."
        ),
        user=(
            "Analyze the following project requirements and extract key information:\n\n"
            "Project Title: {{project_title}}\n"
            "Description: {{description}}\n"
            "Requirements: {{requirements}}\n"
            "Tech Stack: {{tech_stack}}\n"
            "Features: {{features}}\n\n"
            f"{JSON_ONLY} Return a JSON object with the following structure:\n\n"
            "{\n"
            '  "coreObjectives": ["objective1", "objective2"],\n'
            '  "technicalComplexity": "low|medium|high",\n'
            '  "keyDependencies": ["dependency1", "dependency2"],\n'
            '  "riskFactors": ["risk1", "risk2"],\n'
            '  "resourceRequirements": {\n'
            '    "teamSize": number,\n'
            '    "timeline": "description",\n'
            '    "skills": ["skill1", "skill2"]\n'
            "  }\n"
            "}\n\n"
            "Return ONLY the JSON object, nothing else."
        ),
    ),
    PromptTemplate(
        name="searcher",
        # Stage 2: recommend technical patterns
        system=(
            "You are a technical searcher agent that finds relevant patterns and best "
            "practices. Always recommend MERN stack for web and React Native for mobile. "
            "You MUST always return valid JSON only, never markdown or explanations."
        ),
        user=(
            "Based on this project analysis, suggest relevant technical patterns, best "
            "practices, and architectural approaches:\n\n"
            "{{analysis}}\n\n"
            "Tech Stack: {{tech_stack}}\n\n"
            f"IMPORTANT: {_STACK_POLICY}\n\n"
            f"{JSON_ONLY} Return a JSON object with the following structure:\n\n"
            "{\n"
            '  "architecturalPatterns": ["pattern1", "pattern2"],\n'
            '  "apiDesignPatterns": ["pattern1", "pattern2"],\n'
            '  "databaseSchemaPatterns": ["pattern1", "pattern2"],\n'
            '  "securityConsiderations": ["consideration1", "consideration2"],\n'
            '  "scalabilityApproaches": ["approach1", "approach2"]\n'
            "}\n\n"
            "Return ONLY the JSON object, nothing else."
        ),
    ),
    PromptTemplate(
        name="budget_estimator",
        # Stage 3: cost the project
        system=(
            "You are an expert project cost estimator specializing in software "
            "development projects. Provide accurate, realistic budget estimates based on "
            "project requirements. You MUST always return valid JSON only, never "
            "markdown or explanations."
        ),
        user=(
            "Estimate the project budget based on the following information:\n\n"
            "Project: {{project_title}}\n"
            "Description: {{description}}\n"
            "Tech Stack: {{tech_stack}}\n"
            "Features: {{features}}\n"
            "Timeline: {{timeline}}\n"
            "Current Budget (if mentioned): {{current_budget}}\n"
            "Analysis: {{analysis}}\n\n"
            "Consider:\n"
            "- Development complexity (frontend, backend, mobile apps)\n"
            "- Number of features and their complexity\n"
            "- Tech stack requirements\n"
            "- Timeline constraints\n"
            "- Team size needed\n"
            "- Third-party services (payment gateways, hosting, APIs)\n"
            "- Testing and QA\n"
            "- Deployment and DevOps\n"
            "- Maintenance and support\n\n"
            "Provide a detailed budget breakdown in {{currency}} with:\n"
            "- Total estimated budget\n"
            "- Breakdown by category (Development, Design, Testing, DevOps, "
            "Third-party services, Contingency)\n"
            "- Cost per phase/milestone if applicable\n"
            "- Assumptions and notes\n\n"
            f"{JSON_ONLY} Return a JSON object with this exact structure:\n\n"
            "{\n"
            '  "totalBudget": number,\n'
            '  "currency": "{{currency}}",\n'
            '  "breakdown": [\n'
            '    {"category": "Development", "amount": number, "percentage": number, '
            '"description": "description"}\n'
            "  ],\n"
            '  "phases": [\n'
            '    {"name": "Phase name", "budget": number, "duration": "duration", '
            '"description": "description"}\n'
            "  ],\n"
            '  "assumptions": ["assumption1", "assumption2"]\n'
            "}\n\n"
            "Return ONLY the JSON object, nothing else."
        ),
    ),
    PromptTemplate(
        name="writer",
        # Stage 4: write the documentation sections
        system=(
            "You are a technical writer agent that creates comprehensive project "
            "documentation. You MUST always return valid JSON only, never markdown or "
            "explanations."
        ),
        user=(
            "Generate comprehensive development documentation for this project:\n\n"
            "Project: {{project_title}}\n"
            "Analysis: {{analysis}}\n"
            "Patterns: {{patterns}}\n"
            "Budget Estimate: {{budget_estimate}}\n\n"
            "IMPORTANT: Use MERN stack (MongoDB, Express.js, React, Node.js) for web "
            "applications and React Native for mobile applications. If the project "
            "mentions different technologies, change them to MERN stack and React "
            "Native in the documentation.\n\n"
            "Create documentation sections:\n"
            "1. Project Overview\n"
            "2. Technical Architecture (use MERN stack for web, React Native for mobile)\n"
            "3. API Endpoints Specification (Express.js/Node.js REST APIs)\n"
            "4. Database Schema (MongoDB with Mongoose ODM)\n"
            "5. Implementation Timeline\n"
            "6. Tech Stack Details\n"
            "7. Features Breakdown\n"
            "8. Budget Estimation (include the detailed budget breakdown with "
            "categories, phases, and assumptions)\n\n"
            f"{JSON_ONLY} Return a JSON object with this exact structure:\n\n"
            "{\n"
            '  "projectOverview": "overview text",\n'
            '  "technicalArchitecture": "architecture text",\n'
            '  "apiEndpoints": "endpoints text",\n'
            '  "databaseSchema": "schema text",\n'
            '  "implementationTimeline": "timeline text",\n'
            '  "techStackDetails": "tech stack text",\n'
            '  "featuresBreakdown": "features text",\n'
            '  "budgetEstimation": "budget text"\n'
            "}\n\n"
            "Return ONLY the JSON object, nothing else."
        ),
    ),
    PromptTemplate(
        name="verifier",
        # Stage 5: check the assembled documentation
        system=(
            "You are a verification agent that ensures documentation quality and "
            "completeness. You MUST always return valid JSON only, never markdown or "
            "explanations."
        ),
        user=(
            "Verify the completeness and quality of this documentation:\n\n"
            "Project Requirements: {{requirements}}\n"
            "Generated Documentation: {{full_document}}\n\n"
            "Check for:\n"
            "- Completeness (all sections present)\n"
            "- Technical accuracy\n"
            "- Consistency\n"
            "- Missing information\n"
            "- Areas needing clarification\n\n"
            f"{JSON_ONLY} Return a JSON object with this structure:\n\n"
            "{\n"
            '  "completeness": 0.0 to 1.0,\n'
            '  "technicalAccuracy": "assessment",\n'
            '  "consistency": "assessment",\n'
            '  "missingInformation": ["item1", "item2"],\n'
            '  "areasNeedingClarification": ["area1", "area2"]\n'
            "}\n\n"
            "Return ONLY the JSON object, nothing else."
        ),
    ),
]
