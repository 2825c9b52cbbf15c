"""Declarative argument definitions and validation rules."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Mapping

if TYPE_CHECKING:
    from ..core.localization import Lang
    from .scanners import Scanner


class ValidationRule(enum.Enum):
    NON_NULL = "non_null"
    IS_ARRAY = "is_array"
    NON_ZERO_SHIFT = "non_zero_shift"
    TIME_DISTANCE_ONLY = "time_distance_only"
    VALID_TEXT_CHANNELS = "valid_text_channels"


@dataclass(frozen=True)
class CommandArgDef:
    """One named argument of a command.

    Localized aliases and help text live under `<string_prefix>.aliases` and
    `<string_prefix>.help`; the first alias is the display name. Predefined
    values map a localized keyword-list id to the value it stands for.
    """

    name: str
    scanner: "Scanner"
    string_prefix: str
    rules: frozenset[ValidationRule] = field(default_factory=frozenset)
    skip_in_sequential_read: bool = False
    predefined: Mapping[str, Any] = field(default_factory=dict)

    @property
    def help_id(self) -> str:
        return f"{self.string_prefix}.help"

    @property
    def aliases_id(self) -> str:
        return f"{self.string_prefix}.aliases"

    def aliases(self, lang: "Lang") -> tuple[str, ...]:
        aliases = tuple(alias.casefold() for alias in lang.get_list(self.aliases_id))
        return aliases or (self.name.casefold(),)

    def display_name(self, lang: "Lang") -> str:
        aliases = lang.get_list(self.aliases_id)
        return aliases[0] if aliases else self.name

    def has_rule(self, rule: ValidationRule) -> bool:
        return rule in self.rules
