# ops_resilience/core/__init__.py
"""
Core infrastructure shared across the resilience layer.
"""
