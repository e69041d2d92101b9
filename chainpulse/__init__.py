"""Chainpulse: health monitoring for a blockchain RPC node and explorer API."""

__version__ = "0.1.0"
