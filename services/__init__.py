"""Transport-level helpers used by the alerting engine's channel adapters."""
