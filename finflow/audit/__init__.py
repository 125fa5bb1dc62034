"""Audit logging package."""

from finflow.audit.logger import AuditLogger

__all__ = ["AuditLogger"]
