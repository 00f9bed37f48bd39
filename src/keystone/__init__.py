"""Keystone - authorization layer for the internal admin platform."""

__version__ = "0.1.0"
