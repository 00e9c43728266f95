"""Datastore — async SQLAlchemy engine and session management."""

from nodegaze.datastore.client import Datastore

__all__ = ["Datastore"]
