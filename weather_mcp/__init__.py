"""Mock weather tools behind JWT role-based authorization, and the service that consumes them."""

__version__ = "0.1.0"
