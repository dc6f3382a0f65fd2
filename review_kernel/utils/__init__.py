"""Utility functions for the review kernel."""
