"""Error handling framework for tgclaude.

Error classes map one-to-one onto the failure kinds the orchestrator
distinguishes:
- TransportError: outbound chat API call failed
- TranscriptionError / SynthesisError: voice services failed
- SummaryError: a handoff summary request failed
- PersistenceError: the session store failed
- ConfigurationError: startup configuration is invalid
"""

from src.errors.domain import (
    BridgeError,
    ConfigurationError,
    PersistenceError,
    SummaryError,
    SynthesisError,
    TranscriptionError,
    TransportError,
)

__all__ = [
    "BridgeError",
    "TransportError",
    "TranscriptionError",
    "SynthesisError",
    "SummaryError",
    "PersistenceError",
    "ConfigurationError",
]
