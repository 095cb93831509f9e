# ABOUTME: Cross-cutting utilities and shared infrastructure
# ABOUTME: Logging, retry/rate limiting, error types and rich console tables

"""
Utils Layer: Shared infrastructure and cross-cutting concerns

This layer provides:
- Logging configuration and structured loggers
- Retry policies, error classification and rate limiting
- The exception hierarchy used across the pipeline
- Rich table helpers for the CLI

Data Flow: Supporting services for all other layers
"""

from . import logging

__all__ = [
    "logging",
]
