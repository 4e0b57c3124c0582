"""
Services Package

External integrations: the local fallback cache and the REST backend.
"""
