"""Audit CLI commands."""
