"""
Package: utils
Description: Shared helpers used throughout the delivery pipeline.

- logger: Structured logging configuration and helpers
- metrics: CloudWatch custom metrics
- sanitize: Scrubbing of e-mail addresses and secrets for logs
"""

__all__ = []
