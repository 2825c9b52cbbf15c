"""Source-agnostic command pipeline: scanning, validation, permissions, execution."""

from .arg_def import CommandArgDef, ValidationRule
from .base import Command, CommandInvocation, CommandLocks, CommandServices
from .parser import CommandPipeline, ParseState, ProcessResult
from .permissions import (
    CommandPermissionFilter,
    PermissionDecision,
    PermissionResolver,
    PermissionType,
    SubjectType,
)
from .registry import CommandRegistry

__all__ = [
    "Command",
    "CommandArgDef",
    "CommandInvocation",
    "CommandLocks",
    "CommandPermissionFilter",
    "CommandPipeline",
    "CommandRegistry",
    "CommandServices",
    "ParseState",
    "PermissionDecision",
    "PermissionResolver",
    "PermissionType",
    "ProcessResult",
    "SubjectType",
    "ValidationRule",
]
