"""
Shared infrastructure: settings, logging, metrics, catalogs, phone handling.
"""
