from __future__ import annotations
"""Domain error taxonomy.

Every error is a werkzeug HTTPException so route handlers can let it propagate
to the app-wide error handler, while services called outside a request (the
auto-close script, tests) can catch them by class. `kind` is the stable tag
rendered in the JSON error payload.
"""
from werkzeug import exceptions as wz


class ValidationError(wz.BadRequest):
    kind = 'ValidationError'


class NotFound(wz.NotFound):
    kind = 'NotFound'


class Forbidden(wz.Forbidden):
    kind = 'Forbidden'


class InvalidTransition(wz.BadRequest):
    kind = 'InvalidTransition'


class Conflict(wz.Conflict):
    kind = 'Conflict'


class RequestClosed(wz.Conflict):
    kind = 'RequestClosed'


class BuildingNotFound(NotFound):
    kind = 'BuildingNotFound'


class CustomIdNotAllowed(ValidationError):
    kind = 'CustomIdNotAllowed'


class InvalidTechnician(ValidationError):
    kind = 'InvalidTechnician'


class InvalidStatusTransition(InvalidTransition):
    kind = 'InvalidStatusTransition'


class DuplicateIdentifier(Conflict):
    kind = 'DuplicateIdentifier'


__all__ = [
    'ValidationError', 'NotFound', 'Forbidden', 'InvalidTransition', 'Conflict', 'RequestClosed',
    'BuildingNotFound', 'CustomIdNotAllowed', 'InvalidTechnician', 'InvalidStatusTransition',
    'DuplicateIdentifier',
]
