"""
HandShakeMe instant booking engine.
"""
