"""Role management: roles, their permission sets and their actors."""

from keystone.modules.roles.routes import router


__all__ = ["router"]
