"""Detached Mindfulness practice scripts.

A DM practice walks through four steps: label the thought, allow it, take
the observer position (through a chosen metaphor), then refocus on an
anchor. The first three steps have fixed lengths; Refocus fills whatever
remains of the chosen practice duration.
"""

from __future__ import annotations

from ..session.script import Script, load_script

DM_DURATIONS = (60, 120, 180)
DEFAULT_METAPHOR = "radio"

METAPHORS = {
    "radio": {
        "title": "Radio Metaphor",
        "description": "Your thoughts are like a radio playing in another room",
        "position": (
            "Your thoughts are like a radio playing in another room. You can hear it, but you're "
            "not listening to the words. It's just background noise while you focus on what you're doing."
        ),
    },
    "screen": {
        "title": "Screen Metaphor",
        "description": "Thoughts are like text scrolling across a screen",
        "position": (
            "Thoughts are like text scrolling across a screen. You see them passing, but you don't "
            "read every word. They move by while you attend to other things."
        ),
    },
    "weather": {
        "title": "Weather Metaphor",
        "description": "Thoughts are like weather passing overhead",
        "position": (
            "Thoughts are like weather passing overhead. Clouds come and go. You notice them but "
            "don't try to change them. You continue with your activities regardless."
        ),
    },
}

# (name, seconds, instruction); Refocus length is computed
_STEPS = (
    ("Label", 15,
     "Notice any thought present right now. Simply label it: 'A thought is here' or 'Worry is present' "
     "or 'Planning is happening'. Don't analyze the content, just acknowledge its presence."),
    ("Allow", 15,
     "Allow this thought to be present. Don't push it away. Don't try to stop it. It's just a mental "
     "event, like a sound in another room. It can be there without your participation."),
    ("Position", 20,
     "Position yourself as an observer. You're watching this thought like:"),
)
_REFOCUS = (
    "Now gently redirect your attention to your chosen anchor: Your breath moving in and out, sounds in "
    "your environment, or physical sensations in your hands. The thought may still be there. That's fine. "
    "Your attention is elsewhere."
)


def build_dm_script(duration_seconds: int = 60, metaphor: str = DEFAULT_METAPHOR) -> Script:
    """Build a Detached Mindfulness script.

    Args:
        duration_seconds: Total practice length, one of DM_DURATIONS
        metaphor: Observer metaphor key ("radio", "screen", "weather")

    Raises:
        ValueError: For an unsupported duration or metaphor
    """
    if duration_seconds not in DM_DURATIONS:
        raise ValueError(f"DM duration must be one of {DM_DURATIONS}, got {duration_seconds}")
    if metaphor not in METAPHORS:
        raise ValueError(f"Unknown DM metaphor '{metaphor}' (choose from {sorted(METAPHORS)})")

    phases = []
    for name, seconds, text in _STEPS:
        if name == "Position":
            text = f"{text} {METAPHORS[metaphor]['position']}"
        phases.append({
            "name": name,
            "duration_seconds": seconds,
            "instructions": [{"offset_seconds": 0, "text": text}],
        })
    fixed = sum(seconds for _, seconds, _ in _STEPS)
    phases.append({
        "name": "Refocus",
        "duration_seconds": duration_seconds - fixed,
        "instructions": [{"offset_seconds": 0, "text": _REFOCUS}],
    })

    return load_script({
        "name": f"Detached Mindfulness ({METAPHORS[metaphor]['title']})",
        "key": "dm",
        "description": METAPHORS[metaphor]["description"],
        "total_duration_seconds": duration_seconds,
        "phases": phases,
        "metadata": {"metaphor": metaphor},
    })
