"""BehaviorLab experiment engine.

Modular, protocol-based architecture:
- types.py: Core data types + protocol interfaces
- llm_client.py: Model-agnostic LLM client (LiteLLM)
- json_output.py: Defensive parsing of JSON-shaped model output
- templates.py: Two-pass prompt template resolution + override config
- nodes.py: Explicit classification of agent graph nodes
- environment.py: Experiment policy knobs
- persona_synthesizer.py: Rubric + persona batch generation
- user_simulator.py: LLM-powered persona voice
- agent_gateway.py: HTTP client for the target agent
- conversation_simulator.py: Fixed-length persona <-> agent conversation
"""
