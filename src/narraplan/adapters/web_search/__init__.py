"""Web candidate lookup adapter."""

from __future__ import annotations

from .client import HttpWebCandidateFinder
from .schema import WebResult, WebSearchResponse, has_results

__all__ = ["HttpWebCandidateFinder", "WebResult", "WebSearchResponse", "has_results"]
