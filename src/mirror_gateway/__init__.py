"""Failover gateway that relays fetches to interchangeable upstream mirrors."""

__version__ = "0.1.0"
