"""Dependency-ordered, idempotent provisioning of an AWS web stack."""

__version__ = "0.1.0"
