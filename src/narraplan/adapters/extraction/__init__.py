"""Narrative extraction service adapter."""

from __future__ import annotations

from .client import ExtractionServiceError, HttpNarrativeExtractor
from .schema import ExtractionPayload, RawAction, extract_json_object, parse_extraction_payload
from .translator import convert_raw_action, translate_payload

__all__ = [
    "ExtractionPayload",
    "ExtractionServiceError",
    "HttpNarrativeExtractor",
    "RawAction",
    "convert_raw_action",
    "extract_json_object",
    "parse_extraction_payload",
    "translate_payload",
]
