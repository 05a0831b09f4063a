"""Split generated slide-deck text into per-slide units.

Parsing strategy, first match wins:
  1. Slide headings (``Slide 3``, ``## Slide 3:``, ``幻灯片 3``, ``第3张幻灯片``,
     ``## 3``). Each region runs from its heading to the next one and is kept
     only when it carries a narrative-goal or key-content section.
  2. Split on the ``// 叙事目标`` marker, or ``// NARRATIVE GOAL`` when the
     former is absent; each tail becomes a slide re-prefixed with the marker.
  3. The whole text as a single slide.

Every slide carries the deck-wide style found between ``<STYLE_INSTRUCTIONS>``
tags, or "" when there is none.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from quire.errors import SlideLimitError

MAX_SLIDES = 10

_STYLE_OPEN = "<STYLE_INSTRUCTIONS>"
_STYLE_CLOSE = "</STYLE_INSTRUCTIONS>"

_HEADING_RE = re.compile(
    r"^(?:\s*#{1,6}\s*)?(?:Slide|幻灯片|第\d+张幻灯片|##)\s*\d+[:\s]*.*$",
    re.MULTILINE,
)
_SECTION_MARKERS = ("叙事目标", "narrative goal", "关键内容", "key content")

_CN_GOAL_MARKER = "// 叙事目标"
_EN_GOAL_MARKER = "// NARRATIVE GOAL"


@dataclass
class Slide:
    style: str
    content: str
    order: int


def extract_style(text: str) -> str:
    start = text.find(_STYLE_OPEN)
    end = text.find(_STYLE_CLOSE)
    if start == -1 or end <= start:
        return ""
    return text[start + len(_STYLE_OPEN) : end]


def segment_slides(text: str) -> list[Slide]:
    """Return the ordered, non-empty list of slides in *text*."""
    style = extract_style(text)
    bodies = _split_on_headings(text) or _split_on_goal_marker(text) or [text]
    return [Slide(style=style, content=body, order=i) for i, body in enumerate(bodies)]


def check_slide_limit(slides: list[Slide], limit: int = MAX_SLIDES) -> None:
    """Raise ``SlideLimitError`` when *slides* exceeds *limit*."""
    if len(slides) > limit:
        raise SlideLimitError(len(slides), limit)


def _split_on_headings(text: str) -> list[str]:
    starts = [m.start() for m in _HEADING_RE.finditer(text)]
    bodies: list[str] = []
    for i, start in enumerate(starts):
        end = starts[i + 1] if i + 1 < len(starts) else len(text)
        region = text[start:end]
        lowered = region.lower()
        if any(marker in lowered for marker in _SECTION_MARKERS):
            bodies.append(region)
    return bodies


def _split_on_goal_marker(text: str) -> list[str]:
    marker = _CN_GOAL_MARKER if _CN_GOAL_MARKER in text else _EN_GOAL_MARKER
    if marker not in text:
        return []
    return [marker + part for part in text.split(marker)[1:]]
