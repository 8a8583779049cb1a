"""
PMS-Core
========

Shared infrastructure for the booking engine and the channel manager:
configuration, persistence, error taxonomy, logging, locks and the
background task queue.
"""
