"""
Booking engine services.
"""
