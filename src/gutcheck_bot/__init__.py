# gutcheck_bot/__init__.py
"""
GutCheck relationship-support triage bot.

This package contains:
- config: env, logging + Bedrock chat helper
- keywords / detectors: keyword lists and the literal-match signal detectors
- profile: region detection + user profile context
- helplines: regional helpline table, matching and recommendation text
- state / stages: conversation state and the stage machine
- prompts / policy: prompt templates and one builder per response path
- attachments: screenshot/PDF handling
- graph: the compiled LangGraph turn pipeline (run_turn)
- presentation: chunking + typing reveal
- session: ChatSession, the per-chat owner of state and history
- db: saved chat history
- app: terminal front end
"""
