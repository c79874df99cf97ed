"""
Declarative base shared by all models.

Engines and session factories live in ``engines`` and ``sessions``; the
access-controlled unit-of-work entry point is ``gateway.StorageGateway``.
"""

from sqlalchemy.orm import DeclarativeMeta, declarative_base

Base: DeclarativeMeta = declarative_base()

__all__ = ["Base"]
