"""
Briefsmith
AI module.

Submodules:
    - parser: recovery of JSON from noisy LLM output
    - gateway: LLM Gateway (provider chain, normalization, failover)
    - cache: fingerprint-keyed response cache (Redis / memory)
    - prompt_registry: prompt templates with YAML overrides
    - stages / orchestrator / documentation: the documentation pipeline
    - conversation: conversational requirements responder
"""
