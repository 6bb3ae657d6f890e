"""
Totem Relay: State Normalizer
===============================
Pure sync functions that turn the model's free-text reply into one of
the five animation clips the scene can play.

The model is asked to end every reply with ``[state: <clip>]`` but it
drifts: it capitalises, invents moods ("serene", "lyrical"), or forgets
the tag entirely. Synonyms are folded onto the canonical clips and
everything else lands on ``dormant``. No I/O, never raises.
"""

import logging
import re

from models import CanonicalState

logger = logging.getLogger("totem.state")

_STATE_TAG = re.compile(r"\[state:\s*([^\]]+)\]", re.IGNORECASE)

FALLBACK_STATE = CanonicalState.DORMANT

# ── Synonym table ──────────────────────────────────────────────────────
# Informal mood words the model tends to use → canonical clip name.
_STATE_SYNONYMS: dict[str, str] = {
    "serene":       "resonant",
    "calm":         "resonant",
    "peaceful":     "resonant",
    "poetic":       "transcendent",
    "lyrical":      "transcendent",
    "spiritual":    "transcendent",
    "anxious":      "fractured",
    "tense":        "fractured",
    "chaotic":      "fractured",
    "sleepy":       "dormant",
    "asleep":       "dormant",
    "neutral":      "awakened",
    "baseline":     "awakened",
    "awakened":     "awakened",
    "resonant":     "resonant",
    "fractured":    "fractured",
    "transcendent": "transcendent",
    "dormant":      "dormant",
}

_CANONICAL_VALUES = frozenset(state.value for state in CanonicalState)


def extract_state_token(reply_text: str) -> str | None:
    """Return the lower-cased, trimmed token of the first ``[state: ...]`` tag, or None."""
    if not isinstance(reply_text, str):
        return None
    match = _STATE_TAG.search(reply_text)
    if match is None:
        return None
    return match.group(1).lower().strip()


def normalize_state(reply_text: str) -> CanonicalState:
    """
    Map a model reply onto one of the five canonical states.

    Args:
        reply_text: Raw completion text, usually ending in a state tag.

    Returns:
        The matching CanonicalState. A missing tag, an unknown token or
        any malformed input resolves to ``CanonicalState.DORMANT``.
    """
    raw = extract_state_token(reply_text)
    if not raw:
        logger.debug("No state tag in reply, falling back to %s", FALLBACK_STATE.value)
        return FALLBACK_STATE

    mapped = _STATE_SYNONYMS.get(raw, raw)
    if mapped not in _CANONICAL_VALUES:
        logger.info("Unrecognised state token %r, falling back to %s", raw, FALLBACK_STATE.value)
        return FALLBACK_STATE

    return CanonicalState(mapped)
