"""
Package: delivery
Description: Event delivery pipeline for the Bento API.

Provides the submission gate, the queue worker, the retry scheduler,
the outbound gateway guard and the HTTP delivery client.
"""
