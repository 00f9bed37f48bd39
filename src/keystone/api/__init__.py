"""HTTP API package.

The root router lives in ``keystone.api.router``.
"""
