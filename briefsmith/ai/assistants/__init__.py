"""
Briefsmith
AI assistants built on the gateway.

    - requirement_capture: structured requirements from a conversation
"""
