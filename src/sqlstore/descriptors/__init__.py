"""Descriptors used across sqlstore."""

from sqlstore.descriptors.lazy import LazyField

__all__ = ["LazyField"]
