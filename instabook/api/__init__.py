"""
HTTP adapter for the booking engine.
"""
