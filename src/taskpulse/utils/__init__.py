"""Shared helpers for TaskPulse."""
