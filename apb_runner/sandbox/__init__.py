"""Sandbox identity management for APB pods."""
