"""Resilience and alerting for periodic sync jobs."""

__version__ = "0.1.0"
