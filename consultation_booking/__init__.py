"""Consultation booking service."""
