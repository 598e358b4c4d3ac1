"""Migrate Cellar buckets from a Riak CS cluster to a RadosGW cluster."""

__version__ = "1.0.0"
