from __future__ import annotations

from ..base import Command
from .clean import CleanCommand
from .help import HelpCommand
from .image_templates import DeleteImageTemplateCommand
from .perms import AddPermissionCommand, ListPermissionsCommand, RemovePermissionCommand
from .roles import CreateRoleCommand
from .settings import SetLocaleCommand


def default_commands() -> list[Command]:
    return [
        HelpCommand(),
        CleanCommand(),
        DeleteImageTemplateCommand(),
        CreateRoleCommand(),
        SetLocaleCommand(),
        AddPermissionCommand(),
        RemovePermissionCommand(),
        ListPermissionsCommand(),
    ]


__all__ = [
    "AddPermissionCommand",
    "CleanCommand",
    "CreateRoleCommand",
    "DeleteImageTemplateCommand",
    "HelpCommand",
    "ListPermissionsCommand",
    "RemovePermissionCommand",
    "SetLocaleCommand",
    "default_commands",
]
