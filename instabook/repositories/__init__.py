"""
Persistence interfaces and adapters.
"""
