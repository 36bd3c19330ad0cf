"""Natural-language generation prompts derived from a song spec."""

from __future__ import annotations

from typing import List

from ..app.models import SongSpec

INSTRUMENTAL_DIRECTIVE = "This should be an instrumental track without vocals."


def mood_sentence(spec: SongSpec) -> str:
    return f"The song should feel {spec.mood} with a {spec.genre} style."


def tempo_sentence(spec: SongSpec) -> str:
    return f"Tempo around {spec.bpm_range.min}-{spec.bpm_range.max} BPM."


def chorus_sentence(chorus_line: str) -> str:
    return f'Include this line in the chorus: "{chorus_line}"'


def build_prompt(
    spec: SongSpec,
    *,
    include_tempo: bool = True,
    include_instrumental: bool = True,
) -> str:
    """Join the prompt segments in narrative order.

    Providers read the prompt top to bottom, so the day description always
    leads, followed by mood/genre, tempo, the chorus line and finally the
    instrumental directive. Optional segments are dropped, never reordered.
    """
    parts: List[str] = [spec.day_description.strip(), mood_sentence(spec)]
    if include_tempo:
        parts.append(tempo_sentence(spec))
    chorus = (spec.chorus_line or "").strip()
    if chorus:
        parts.append(chorus_sentence(chorus))
    if include_instrumental and spec.force_instrumental:
        parts.append(INSTRUMENTAL_DIRECTIVE)
    return " ".join(parts)
