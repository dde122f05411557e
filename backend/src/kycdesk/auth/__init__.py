"""Reviewer authentication."""
