"""Context budget classification.

Every terminal result reports token usage. The policy maps the resulting
usage percentage onto one of three states:

    usage < 50        NORMAL         record usage only
    50 <= usage < 80  AUTO_HANDOFF   summarize and reset without asking
    usage >= 80       WARN_CONTINUE  warn and wait for the user to say "continue"

The policy is stateless; it is recomputed from scratch on each result.
"""

from enum import Enum

HANDOFF_THRESHOLD = 50.0
WARN_THRESHOLD = 80.0


class ContextState(str, Enum):
    """Action prescribed for a usage measurement."""

    NORMAL = "normal"
    AUTO_HANDOFF = "auto_handoff"
    WARN_CONTINUE = "warn_continue"


def compute_usage_percent(input_tokens: int, output_tokens: int, context_window: int) -> float:
    """Percentage of the context window consumed.

    Example:
        >>> compute_usage_percent(2000, 3000, 10000)
        50.0
    """
    if context_window <= 0:
        return 0.0
    return (input_tokens + output_tokens) / context_window * 100


def classify(usage_percent: float) -> ContextState:
    """Classify a usage percentage. Both thresholds are inclusive."""
    if usage_percent < HANDOFF_THRESHOLD:
        return ContextState.NORMAL
    if usage_percent < WARN_THRESHOLD:
        return ContextState.AUTO_HANDOFF
    return ContextState.WARN_CONTINUE
