"""Attention Training Technique scripts.

Three tracks share the same shape (sounds near and far, switching, dividing
and flexibly controlling attention) at different lengths:

- standard: 900 s, the full daily practice
- short: 480 s, for days with less time
- emergency: 90 s "ATT-Lite" for acute worry/rumination episodes
"""

from __future__ import annotations

from ..session.script import Script, load_script

_INTRODUCTION = (
    "This is Attention Training Technique. This is not relaxation or mindfulness. "
    "This is training for your attention. Sit comfortably with eyes closed or softly focused. "
    "We'll work with sounds in your environment."
)
_CLOSING = (
    "In a moment, open your eyes and return your attention to the room. "
    "Remember, you just trained your attention. This control is always available to you. "
    "Opening your eyes now."
)
_SWITCH_OPENING = [
    (0, "Now you'll rapidly switch attention between different sounds. Don't analyze, just shift. Focus on any sound."),
    (5, "Now switch."),
    (10, "Switch again."),
    (15, "Another sound."),
    (20, "Switch."),
    (25, "Keep switching every few seconds."),
    (30, "Don't stay with any sound."),
    (35, "Just keep moving your attention."),
    (40, "Switch."),
    (45, "Switch."),
    (50, "Switch."),
]


def _switch_cadence(start: int, end: int) -> list[tuple[int, str]]:
    # Three prompts five seconds apart at the start of every 20 s window
    prompts = []
    for block in range(start, end, 20):
        for offset in (block, block + 5, block + 10):
            if offset < end:
                prompts.append((offset, "Switch."))
    return prompts


def _phase(name: str, duration: int, instructions: list[tuple[int, str]]) -> dict:
    return {
        "name": name,
        "duration_seconds": duration,
        "instructions": [{"offset_seconds": t, "text": text} for t, text in instructions],
    }


STANDARD_ATT = {
    "name": "Standard ATT",
    "key": "standard",
    "description": "Full attention training track (15 minutes)",
    "total_duration_seconds": 900,
    "phases": [
        _phase("Introduction", 30, [(0, _INTRODUCTION)]),
        _phase("Selective Attention", 180, [
            (0, "Focus your attention on the most distant sound you can hear. Give it your full attention."),
            (30, "Now switch your attention to a closer sound, perhaps in this room. Focus completely on this sound."),
            (60, "Now focus on a sound very close to you, perhaps your own breathing. Give it full attention."),
            (90, "Switch back to the distant sound."),
            (120, "Now to the room sound."),
            (150, "And to the close sound."),
        ]),
        _phase("Rapid Attention Switching", 240, _SWITCH_OPENING + _switch_cadence(60, 240)),
        _phase("Divided Attention", 240, [
            (0, "Now try to expand your attention to be aware of multiple sounds simultaneously. "
                "Be aware of two sounds at the same time."),
            (30, "Hold both in awareness."),
            (60, "Add a third sound. Try to maintain awareness of all three."),
            (90, "Now expand further. Be aware of as many sounds as possible simultaneously."),
            (120, "The entire sound environment. All sounds together. Maintain this broad awareness."),
            (180, "Now narrow to three sounds."),
            (210, "Now two."),
            (225, "Now one."),
        ]),
        _phase("Flexible Control", 180, [
            (0, "Now practice flexible control. Narrow your attention to one specific sound."),
            (20, "Expand to the whole soundscape."),
            (40, "Narrow to a different single sound."),
            (60, "Expand again to all sounds."),
            (80, "Switch rapidly between three sounds."),
            (110, "Now hold all three simultaneously."),
            (140, "Return to single focus."),
            (160, "And finally, let your attention rest neutrally, aware but not focused."),
        ]),
        _phase("Closing", 30, [(0, _CLOSING)]),
    ],
}

SHORT_ATT = {
    "name": "Short ATT",
    "key": "short",
    "description": "Condensed attention training track (8 minutes)",
    "total_duration_seconds": 480,
    "phases": [
        _phase("Introduction", 30, [(0, _INTRODUCTION)]),
        _phase("Selective Attention", 120, [
            (0, "Focus your attention on the most distant sound you can hear. Give it your full attention."),
            (30, "Now switch your attention to a closer sound, perhaps in this room. Focus completely on this sound."),
            (60, "Now focus on a sound very close to you, perhaps your own breathing. Give it full attention."),
            (90, "Switch back to the distant sound."),
        ]),
        _phase("Rapid Attention Switching", 120, _SWITCH_OPENING + _switch_cadence(60, 120)),
        _phase("Divided Attention", 120, [
            (0, "Now try to expand your attention to be aware of multiple sounds simultaneously. "
                "Be aware of two sounds at the same time."),
            (30, "Hold both in awareness. Add a third sound. Try to maintain awareness of all three."),
            (60, "Now expand further. Be aware of as many sounds as possible simultaneously. "
                 "The entire sound environment."),
            (90, "Now narrow to three sounds."),
            (105, "Now two."),
            (115, "Now one."),
        ]),
        _phase("Flexible Control", 60, [
            (0, "Now practice flexible control. Narrow your attention to one specific sound."),
            (15, "Expand to the whole soundscape."),
            (30, "Switch rapidly between three sounds."),
            (45, "And finally, let your attention rest neutrally, aware but not focused."),
        ]),
        _phase("Closing", 30, [(0, _CLOSING)]),
    ],
}

EMERGENCY_ATT = {
    "name": "Emergency ATT-Lite",
    "key": "emergency",
    "description": "90-second attention reset",
    "total_duration_seconds": 90,
    "phases": [
        _phase("Identify Sounds", 20, [
            (0, "Quickly identify three distinct sounds around you. Don't analyze them, just notice them."),
        ]),
        _phase("Rapid Switching", 30, [
            (0, "Now rapidly switch your attention between these three sounds."),
            (5, "Switch."),
            (10, "Switch."),
            (15, "Switch."),
            (20, "Switch."),
            (25, "Switch."),
        ]),
        _phase("Hold All Three", 20, [
            (0, "Now hold all three sounds in your awareness simultaneously."),
        ]),
        _phase("Expand to Full Soundscape", 20, [
            (0, "Expand your attention to the full soundscape around you. All sounds together."),
        ]),
    ],
}

# Validated at import so a broken edit fails loudly
STANDARD_ATT_SCRIPT: Script = load_script(STANDARD_ATT)
SHORT_ATT_SCRIPT: Script = load_script(SHORT_ATT)
EMERGENCY_ATT_SCRIPT: Script = load_script(EMERGENCY_ATT)
