"""Test factories."""

from tests.factories.actor import ActorFactory


__all__ = ["ActorFactory"]
