"""
Package: bento_events
Description: Reliable event delivery pipeline for the Bento API.

Producers hand events to the submission gate; a periodic worker drains
the work queue through the outbound gateway guard, and the retry
scheduler handles backoff and dead-lettering.
"""

__version__ = "0.3.0"
