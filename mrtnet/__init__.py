"""Topology parsing, routing tables and a reliable Go-Back-N transport for a small overlay network."""

__version__ = "0.1.0"