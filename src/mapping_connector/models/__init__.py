"""Typed models for mapping documents."""
