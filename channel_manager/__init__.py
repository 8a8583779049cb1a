"""
Channel Manager
===============

Outbound sync of booked ranges to Airbnb, Agoda and Booking.com, and
inbound ingestion of bookings made on those platforms.
"""
