"""Destructive-operation guard for sqlstore."""

from sqlstore.guard.namespace import NamespaceGuard

__all__ = ["NamespaceGuard"]
