"""Tenant IAM - identity and access core for multi-tenant applications."""

__version__ = "0.1.0"
