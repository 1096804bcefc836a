"""
Tests for privacy app.
"""
