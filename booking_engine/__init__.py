"""
Direct Booking Engine
=====================

Availability, pricing, temporary holds, payment confirmation and the
host-facing calendar operations.
"""
