"""Clinic scheduling and billing consistency engine."""
