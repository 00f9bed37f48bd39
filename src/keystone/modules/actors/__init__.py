"""Actors - the authenticated principals authorization decisions are made for.

Actor management (creation, profile edits, sign-in) belongs to the
user-management side of the platform; this package only carries the
columns the authorization layer reads.
"""
