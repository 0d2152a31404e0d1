"""
Pydantic request, response, and value schemas.
"""
