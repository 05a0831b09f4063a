"""Transformation and chat generation over notebook sources."""

from quire.generate.insight import DeepInsightCommand, InsightRunner
from quire.generate.orchestrator import Orchestrator, build_source_context
from quire.generate.slides import MAX_SLIDES, Slide, check_slide_limit, segment_slides
from quire.generate.templates import get_transformation_prompt, title_for_type

__all__ = [
    "DeepInsightCommand",
    "InsightRunner",
    "MAX_SLIDES",
    "Orchestrator",
    "Slide",
    "build_source_context",
    "check_slide_limit",
    "get_transformation_prompt",
    "segment_slides",
    "title_for_type",
]
