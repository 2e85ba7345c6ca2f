"""Gemini-backed services."""
