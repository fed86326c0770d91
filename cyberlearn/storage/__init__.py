"""Storage contract and its Cassandra implementation."""

from .base import LearningStore
from .cassandra import CassandraLearningStore


__all__ = ["CassandraLearningStore", "LearningStore"]
