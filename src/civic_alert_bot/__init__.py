"""Civic Alert Bot - broadcast civic intelligence alerts to messaging channels."""

__version__ = "0.1.0"
