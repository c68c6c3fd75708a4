"""Built-in practice scripts.

Registry keys:
- standard, short, emergency: Attention Training tracks
- dm: Detached Mindfulness (built per duration/metaphor)
"""

from __future__ import annotations

from typing import Dict, List

from ..session.script import Script
from .att_scripts import EMERGENCY_ATT_SCRIPT, SHORT_ATT_SCRIPT, STANDARD_ATT_SCRIPT
from .dm_scripts import DEFAULT_METAPHOR, DM_DURATIONS, METAPHORS, build_dm_script

ATT_SCRIPTS: Dict[str, Script] = {
    "standard": STANDARD_ATT_SCRIPT,
    "short": SHORT_ATT_SCRIPT,
    "emergency": EMERGENCY_ATT_SCRIPT,
}

SCRIPT_KEYS = (*ATT_SCRIPTS, "dm")


def available_scripts() -> List[str]:
    """Registry keys in display order."""
    return list(SCRIPT_KEYS)


def get_script(key: str, *, dm_duration: int = DM_DURATIONS[0], metaphor: str = DEFAULT_METAPHOR) -> Script:
    """Look up a built-in script.

    Args:
        key: Registry key
        dm_duration: Practice length when key is "dm"
        metaphor: Observer metaphor when key is "dm"

    Raises:
        KeyError: Unknown key
        ValueError: Unsupported DM duration or metaphor
    """
    if key == "dm":
        return build_dm_script(dm_duration, metaphor)
    try:
        return ATT_SCRIPTS[key]
    except KeyError:
        raise KeyError(f"Unknown script '{key}' (choose from {', '.join(SCRIPT_KEYS)})") from None


__all__ = [
    "ATT_SCRIPTS",
    "DEFAULT_METAPHOR",
    "DM_DURATIONS",
    "METAPHORS",
    "SCRIPT_KEYS",
    "available_scripts",
    "build_dm_script",
    "get_script",
]
