"""Conversation orchestration for tgclaude.

Main Entry Points:
    ConversationOrchestrator: routes inbound messages (src.orchestrator.conversation)
    StreamRenderer: renders agent exchanges to chat (src.orchestrator.stream_renderer)
    HandoffCoordinator: summarize-and-reset between sessions (src.orchestrator.handoff)
    classify: context budget policy (src.orchestrator.context_policy)

Submodules are imported directly; this package does not re-export them so
that the service layer can depend on orchestrator models without cycles.
"""
