"""Mindful course enrollment and progress API."""
