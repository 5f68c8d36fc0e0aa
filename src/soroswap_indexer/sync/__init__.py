"""Incremental synchronization and classification engine."""

from soroswap_indexer.sync.classifier import SubscriptionClassifier, SubscriptionReconciler
from soroswap_indexer.sync.counter import PairCounterTracker
from soroswap_indexer.sync.pools import PoolAggregator
from soroswap_indexer.sync.synchronizer import SubscriptionSynchronizer

__all__ = [
    "PairCounterTracker",
    "PoolAggregator",
    "SubscriptionClassifier",
    "SubscriptionReconciler",
    "SubscriptionSynchronizer",
]
