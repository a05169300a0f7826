"""
Briefsmith
LLM Gateway.

Provider-agnostic completion router with:
    - Multiple providers behind one ``complete(messages, options)`` contract
    - Per-provider message normalization (alternating-turn vs system-channel APIs)
    - Explicit primary → fallback chain, each provider attempted at most once
    - Response caching (primary-provider responses only)

Every provider attempt yields a ProviderResult; provider failures never
escape as exceptions. The gateway raises ProviderUnavailable only once the
whole chain is exhausted (or nothing is configured).

Usage:
    from briefsmith.ai.gateway import LLMGateway, CompletionOptions
    gw = LLMGateway.from_config(app.config, cache=cache_service)
    result = gw.complete(
        [{"role": "user", "content": "Summarise this project"}],
        CompletionOptions(temperature=0.3, max_tokens=1500),
    )
    result["content"]
"""

import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass

import requests
from google import genai
from google.genai import types

from briefsmith.core.exceptions import ConfigurationError, ProviderError, ProviderUnavailable

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30
MESSAGE_ROLES = ("user", "assistant", "system")


@dataclass(frozen=True)
class CompletionOptions:
    """Per-call generation options."""

    temperature: float = 0.7
    max_tokens: int = 2000
    use_cache: bool = True
    model: str | None = None

    def cache_fields(self) -> dict:
        """Options that change the generated output, hence the cache key."""
        return {
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "model": self.model,
        }


class ProviderResult:
    """Outcome of a single provider attempt.

    Attributes:
        ok:          True if the provider returned usable text.
        provider:    Provider name ("sarvam", "gemini", "local").
        content:     Generated text (None on failure).
        error:       Human-readable failure reason (None on success).
        latency_ms:  Round-trip latency in milliseconds.
    """

    def __init__(self, ok: bool, provider: str, content: str | None = None,
                 error: str | None = None, latency_ms: int = 0) -> None:
        self.ok = ok
        self.provider = provider
        self.content = content
        self.error = error
        self.latency_ms = latency_ms

    def __repr__(self):
        state = "ok" if self.ok else f"error={self.error!r}"
        return f"<ProviderResult {self.provider} {state} {self.latency_ms}ms>"


# ── Message normalization ────────────────────────────────────────────────────

def _join_system(messages: list[dict], sep: str = "\n") -> str:
    return sep.join(m["content"] for m in messages if m["role"] == "system" and m["content"])


def normalize_alternating(messages: list[dict]) -> list[dict]:
    """
    Shape messages for APIs that require strict user/assistant alternation,
    starting with user, and have no system channel.

    - System messages are joined into one instruction and prepended to the
      first user turn (or become a leading user turn if there is none).
    - Consecutive same-role turns are merged.
    - A synthetic user turn is inserted if the sequence still opens with
      an assistant turn.
    """
    instruction = _join_system(messages)
    turns = [
        {"role": m["role"], "content": m["content"]}
        for m in messages if m["role"] in ("user", "assistant")
    ]

    if instruction:
        first_user = next((t for t in turns if t["role"] == "user"), None)
        if first_user is not None:
            first_user["content"] = f"{instruction}\n\n{first_user['content']}"
        else:
            turns.insert(0, {"role": "user", "content": instruction})

    merged: list[dict] = []
    for turn in turns:
        if merged and merged[-1]["role"] == turn["role"]:
            merged[-1]["content"] += "\n\n" + turn["content"]
        else:
            merged.append(turn)

    if merged and merged[0]["role"] != "user":
        merged.insert(0, {"role": "user", "content": "Continue the conversation."})
    return merged


def normalize_system_channel(messages: list[dict]) -> tuple[str, list[dict]]:
    """
    Shape messages for APIs with a dedicated system instruction.

    Returns (system_instruction, turns). Assistant turns use the ``model``
    role. With no turns left, the system text is demoted to a single user
    turn and the instruction cleared.
    """
    instruction = _join_system(messages)
    turns = [
        {"role": "model" if m["role"] == "assistant" else "user", "content": m["content"]}
        for m in messages if m["role"] in ("user", "assistant")
    ]
    if not turns and instruction:
        return "", [{"role": "user", "content": instruction}]
    return instruction, turns


# ── Provider Abstract Base ────────────────────────────────────────────────────

class LLMProvider(ABC):
    """Abstract interface for LLM providers."""

    name = "abstract"
    default_model = ""
    # Model ids this provider serves; an explicit options.model outside
    # these prefixes is ignored in favour of default_model.
    model_prefixes: tuple[str, ...] = ()

    def __init__(self, *, model: str | None = None, timeout: int = DEFAULT_TIMEOUT_SECONDS):
        self.model = model or self.default_model
        self.timeout = timeout

    @abstractmethod
    def is_configured(self) -> bool:
        """True if credentials are present and the provider may be attempted."""
        ...

    @abstractmethod
    def _send(self, messages: list[dict], model: str, options: CompletionOptions) -> str:
        """
        Call the backend once.

        Returns:
            Generated text.

        Raises:
            ProviderError / requests.RequestException / SDK errors on failure.
        """
        ...

    def resolve_model(self, options: CompletionOptions) -> str:
        if options.model and options.model.startswith(self.model_prefixes):
            return options.model
        return self.model

    def complete(self, messages: list[dict], options: CompletionOptions) -> ProviderResult:
        """Attempt one completion; never raises."""
        model = self.resolve_model(options)
        start = time.perf_counter()
        try:
            content = self._send(messages, model, options)
        except Exception as e:
            latency_ms = int((time.perf_counter() - start) * 1000)
            logger.warning("Provider %s failed after %dms: %s", self.name, latency_ms, e,
                           extra={"provider": self.name})
            logger.debug("Provider %s failure detail", self.name, exc_info=True)
            return ProviderResult(ok=False, provider=self.name, error=str(e), latency_ms=latency_ms)

        latency_ms = int((time.perf_counter() - start) * 1000)
        logger.debug("Provider %s completed: model=%s latency=%dms", self.name, model, latency_ms,
                     extra={"provider": self.name})
        return ProviderResult(ok=True, provider=self.name, content=content, latency_ms=latency_ms)


# ── Sarvam Provider (alternating turns, raw HTTPS) ────────────────────────────

class SarvamProvider(LLMProvider):
    """
    Sarvam chat-completions API.

    OpenAI-style wire format, but turns must strictly alternate starting with
    a user turn and there is no system role.

    Environment:
        SARVAM_API_KEY, SARVAM_BASE_URL (default https://api.sarvam.ai)
    """

    name = "sarvam"
    default_model = "sarvam-m"
    model_prefixes = ("sarvam-", "gemma-")

    def __init__(self, api_key: str = "", base_url: str = "https://api.sarvam.ai", *,
                 model: str | None = None, timeout: int = DEFAULT_TIMEOUT_SECONDS,
                 session: requests.Session | None = None):
        super().__init__(model=model, timeout=timeout)
        self.api_key = api_key or ""
        self.base_url = (base_url or "https://api.sarvam.ai").rstrip("/")
        # Inject a custom session in tests; create a real one lazily otherwise.
        self._session = session

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
        return self._session

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _send(self, messages: list[dict], model: str, options: CompletionOptions) -> str:
        formatted = normalize_alternating(messages)
        if not formatted:
            raise ProviderError(self.name, "No valid messages found after filtering")

        body = {
            "model": model,
            "messages": formatted,
            "temperature": options.temperature,
            "max_tokens": options.max_tokens,
        }
        logger.debug("Sarvam request: model=%s messages=%d", model, len(formatted))
        resp = self.session.post(
            f"{self.base_url}/v1/chat/completions",
            json=body,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            timeout=self.timeout,
        )
        if not resp.ok:
            raise ProviderError(self.name, f"HTTP {resp.status_code}: {resp.text[:500]}")

        try:
            content = resp.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ProviderError(self.name, f"Malformed response payload: {e}") from e
        if not isinstance(content, str) or not content.strip():
            raise ProviderError(self.name, "Response contained no content")
        return content


# ── Google Gemini Provider (system instruction channel) ──────────────────────

class GeminiProvider(LLMProvider):
    """
    Google Gemini API provider.

    Accepts a dedicated system instruction plus an unconstrained turn list.

    Environment:
        GEMINI_API_KEY — obtain at https://aistudio.google.com/apikey
    """

    name = "gemini"
    default_model = "gemini-1.5-pro"
    model_prefixes = ("gemini-",)

    def __init__(self, api_key: str = "", *, model: str | None = None,
                 timeout: int = DEFAULT_TIMEOUT_SECONDS, client=None):
        super().__init__(model=model, timeout=timeout)
        self.api_key = api_key or ""
        self._client = client

    def is_configured(self) -> bool:
        return bool(self.api_key) or self._client is not None

    def _get_client(self):
        if self._client is None:
            self._client = genai.Client(
                api_key=self.api_key,
                http_options=types.HttpOptions(timeout=self.timeout * 1000),
            )
        return self._client

    def _send(self, messages: list[dict], model: str, options: CompletionOptions) -> str:
        instruction, turns = normalize_system_channel(messages)
        if not turns:
            raise ProviderError(self.name, "No valid messages found after filtering")

        contents = [
            types.Content(role=t["role"], parts=[types.Part(text=t["content"])])
            for t in turns
        ]
        config = types.GenerateContentConfig(
            temperature=options.temperature,
            max_output_tokens=options.max_tokens,
            system_instruction=instruction or None,
        )

        logger.debug("Gemini request: model=%s messages=%d system=%s",
                     model, len(contents), bool(instruction))
        response = self._get_client().models.generate_content(
            model=model,
            contents=contents,
            config=config,
        )
        text = response.text or ""
        if not text.strip():
            raise ProviderError(self.name, "Response contained no text")
        return text


# ── Local Stub Provider (for dev without API keys) ───────────────────────────

class LocalStubProvider(LLMProvider):
    """
    Deterministic offline provider for development and demos.

    Only used when explicitly configured (LLM_PRIMARY_PROVIDER=local); never
    registered implicitly, so missing keys still surface as ProviderUnavailable.
    """

    name = "local"
    default_model = "local-stub"
    model_prefixes = ("local-",)

    def is_configured(self) -> bool:
        return True

    def _send(self, messages: list[dict], model: str, options: CompletionOptions) -> str:
        user_msg = ""
        for m in reversed(messages):
            if m["role"] == "user":
                user_msg = m["content"]
                break
        return self._generate_stub_response(user_msg)

    @staticmethod
    def _generate_stub_response(user_msg: str) -> str:
        """Generate a context-aware stub response."""
        lower = user_msg.lower()

        if "extract and structure the project requirements" in lower:
            return json.dumps({
                "techStack": ["React", "Node.js", "MongoDB"],
                "features": ["User accounts", "Product catalogue", "Checkout"],
                "timeline": "About three months",
                "budget": "Around 5 lakh INR",
                "scope": "Customer-facing web shop with an admin panel",
            })

        if "verify the completeness" in lower:
            return json.dumps({
                "completeness": 0.85,
                "technicalAccuracy": "Consistent with the proposed stack",
                "consistency": "Sections agree on scope and timeline",
                "missingInformation": ["Hosting region"],
                "areasNeedingClarification": ["Payment provider"],
            })

        if "generate comprehensive development documentation" in lower:
            return json.dumps({
                "projectOverview": "A web shop with catalogue, cart and checkout.",
                "technicalArchitecture": "React SPA talking to an Express REST API backed by MongoDB.",
                "apiEndpoints": "GET /api/products, POST /api/orders, POST /api/auth/login",
                "databaseSchema": "users, products, orders collections (Mongoose models).",
                "implementationTimeline": "Weeks 1-4 backend, 5-9 frontend, 10-12 QA and launch.",
                "techStackDetails": "MongoDB, Express.js, React, Node.js.",
                "featuresBreakdown": "Accounts, catalogue, cart, checkout, admin panel.",
            })

        if "estimate the project budget" in lower:
            return json.dumps({
                "totalBudget": 500000,
                "currency": "INR",
                "breakdown": [
                    {"category": "Development", "amount": 300000, "percentage": 60,
                     "description": "Frontend and backend build"},
                    {"category": "Testing", "amount": 75000, "percentage": 15,
                     "description": "QA and UAT"},
                    {"category": "Contingency", "amount": 125000, "percentage": 25,
                     "description": "Scope and schedule buffer"},
                ],
                "phases": [
                    {"name": "Build", "budget": 350000, "duration": "9 weeks",
                     "description": "Core features"},
                    {"name": "Launch", "budget": 150000, "duration": "3 weeks",
                     "description": "QA, deployment, handover"},
                ],
                "assumptions": ["Client supplies product data", "Single currency"],
            })

        if "technical patterns" in lower:
            return json.dumps({
                "architecturalPatterns": ["Layered REST backend", "SPA frontend"],
                "apiDesignPatterns": ["Resource-oriented REST", "JWT auth"],
                "databaseSchemaPatterns": ["Document per aggregate"],
                "securityConsiderations": ["Input validation", "Rate limiting"],
                "scalabilityApproaches": ["Stateless API behind a load balancer"],
            })

        if "analyze the following project requirements" in lower:
            return json.dumps({
                "coreObjectives": ["Sell products online"],
                "technicalComplexity": "medium",
                "keyDependencies": ["Payment gateway"],
                "riskFactors": ["Unclear launch date"],
                "resourceRequirements": {"teamSize": 3, "timeline": "3 months",
                                         "skills": ["React", "Node.js"]},
            })

        return ("Thanks! Could you tell me more about what you want to build, "
                "your timeline and your budget?")


# ── LLM Gateway (Main Interface) ─────────────────────────────────────────────

PROVIDER_CLASSES = {
    "sarvam": SarvamProvider,
    "gemini": GeminiProvider,
    "local": LocalStubProvider,
}


def build_provider(name: str, config) -> LLMProvider:
    """Instantiate a provider by name from a Flask-style config mapping."""
    timeout = int(config.get("LLM_REQUEST_TIMEOUT", DEFAULT_TIMEOUT_SECONDS))
    if name == "sarvam":
        return SarvamProvider(
            api_key=config.get("SARVAM_API_KEY", ""),
            base_url=config.get("SARVAM_BASE_URL", "https://api.sarvam.ai"),
            model=config.get("SARVAM_MODEL"),
            timeout=timeout,
        )
    if name == "gemini":
        return GeminiProvider(
            api_key=config.get("GEMINI_API_KEY", ""),
            model=config.get("GEMINI_MODEL"),
            timeout=timeout,
        )
    if name == "local":
        return LocalStubProvider(timeout=timeout)
    raise ConfigurationError(
        f"Unknown LLM provider '{name}'. Expected one of: {', '.join(sorted(PROVIDER_CLASSES))}"
    )


class LLMGateway:
    """
    Central gateway for all LLM calls.

    Features:
        - Ordered provider chain: chain[0] is the primary, the rest fallbacks
        - Unconfigured providers are skipped, failed ones fall through
        - Cache lookup before any provider call (opt out per call)
        - Only primary responses are cached

    Usage:
        gw = LLMGateway([SarvamProvider(key), GeminiProvider(key)], cache=cache)
        gw.complete(messages, CompletionOptions(temperature=0.3))
    """

    def __init__(self, chain: list[LLMProvider], cache=None):
        self.chain = list(chain)
        self.cache = cache

    @classmethod
    def from_config(cls, config, cache=None) -> "LLMGateway":
        """
        Build the primary → fallback chain from configuration.

        Raises:
            ConfigurationError: if a provider name is unknown.
        """
        chain = []
        for key in ("LLM_PRIMARY_PROVIDER", "LLM_FALLBACK_PROVIDER"):
            name = (config.get(key) or "").strip().lower()
            if name and name != "none":
                chain.append(build_provider(name, config))
        return cls(chain, cache=cache)

    @staticmethod
    def _canonical_messages(messages: list) -> list[dict]:
        """Reduce messages to role/content pairs; drop unknown roles."""
        canonical = []
        for m in messages:
            role = m.get("role")
            if role not in MESSAGE_ROLES:
                logger.debug("Dropping message with unsupported role %r", role)
                continue
            canonical.append({"role": role, "content": str(m.get("content") or "")})
        return canonical

    def complete(self, messages: list, options: CompletionOptions | None = None) -> dict:
        """
        Generate a completion with cache lookup and primary → fallback failover.

        Args:
            messages: Ordered chat messages ({"role", "content"} dicts).
            options: Generation options (defaults to CompletionOptions()).

        Returns:
            dict: {content, provider, cache_hit, fallback_used, latency_ms}

        Raises:
            ProviderUnavailable: no provider configured, or all attempted failed.
        """
        options = options or CompletionOptions()
        messages = self._canonical_messages(messages)

        cache_key = None
        if options.use_cache and self.cache is not None:
            cache_key = self.cache.compute_fingerprint(messages, options.cache_fields())
            cached = self.cache.get(cache_key)
            if cached and cached.get("content"):
                logger.debug("LLM response retrieved from cache")
                return {
                    "content": cached["content"],
                    "provider": "cache",
                    "cache_hit": True,
                    "fallback_used": False,
                    "latency_ms": 0,
                }

        attempted: list[str] = []
        errors: dict[str, str] = {}
        for position, provider in enumerate(self.chain):
            if not provider.is_configured():
                logger.warning("LLM provider %s not configured, skipping", provider.name)
                continue

            attempted.append(provider.name)
            result = provider.complete(messages, options)
            if not result.ok:
                errors[provider.name] = result.error
                logger.warning("LLM provider %s failed: %s", provider.name, result.error,
                               extra={"provider": provider.name})
                continue

            is_primary = position == 0
            if is_primary and cache_key is not None:
                self.cache.set(cache_key, {"content": result.content})
            if not is_primary:
                logger.info("LLM fallback provider %s succeeded", provider.name,
                            extra={"provider": provider.name})
            return {
                "content": result.content,
                "provider": provider.name,
                "cache_hit": False,
                "fallback_used": not is_primary,
                "latency_ms": result.latency_ms,
            }

        error = ProviderUnavailable(attempted, errors)
        logger.error("%s", error)
        raise error

    def providers_status(self) -> list[dict]:
        """Chain summary for health checks (never exposes credentials)."""
        return [
            {
                "name": p.name,
                "role": "primary" if i == 0 else "fallback",
                "configured": p.is_configured(),
                "model": p.model,
            }
            for i, p in enumerate(self.chain)
        ]
