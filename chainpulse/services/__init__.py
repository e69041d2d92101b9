"""Outbound clients and call accounting."""
