# ABOUTME: Data extraction from third-party card listing pages
# ABOUTME: Pipeline Stage 1: page fetch, HTML sanitizing and model-driven card extraction

"""
Extraction Layer: Get candidate cards from external sources

This layer handles:
- Rate-limited, retried page fetches
- Sanitizing HTML before it reaches the model
- Best-effort parsing of the model's JSON card array

Data Flow: External Sources → ExtractedCard list → media/ and persistence/
"""

from .base import ExtractedCard, PageAnalysis, SelectorSet

__all__ = [
    "ExtractedCard",
    "PageAnalysis",
    "SelectorSet",
]
