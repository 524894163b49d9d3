"""Persistence adapters for the document store port."""

from .memory_store import InMemoryDocumentStore
from .sqlalchemy_store import SqlAlchemyDocumentStore

__all__ = ["InMemoryDocumentStore", "SqlAlchemyDocumentStore"]
