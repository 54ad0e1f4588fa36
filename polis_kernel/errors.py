"""
Error taxonomy for the Polis kernel.

ToolError subclasses are recoverable: Toolsets turn them into "Error: ..."
result strings so a bad tool call never terminates a pass. UpstreamFailure
is the one condition allowed to abort a pass early.
"""


class PolisError(Exception):
    """Base class for kernel errors."""
    pass


class ToolError(PolisError):
    """A toolset-level failure, reported to the caller as result text."""
    pass


class NotFound(ToolError):
    """Unknown room, item, tool or toolset index."""
    pass


class PermissionDenied(ToolError):
    """Private room without invite, item removal by a non-owner."""
    pass


class Conflict(ToolError):
    """Duplicate chat handle in a room."""
    pass


class PreconditionFailed(ToolError):
    """Chat action attempted before entering."""
    pass


class ValidationFailed(ToolError):
    """Malformed structured input or a reasoning response that fails the contract."""
    pass


class UpstreamFailure(PolisError):
    """The reasoning collaborator returned nothing, or a store write failed."""
    pass


class ToolNameCollision(ValueError):
    """Two Toolsets in one Menu declare the same tool name."""
    pass
