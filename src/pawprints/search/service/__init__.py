"""Search service package.

Provides the FastAPI search endpoint and the pawprints CLI.
"""
