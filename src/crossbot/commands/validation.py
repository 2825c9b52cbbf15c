from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Optional, Union

from ..core.guild_sync import ChannelInfo
from ..core.localization import Lang
from .arg_def import CommandArgDef, ValidationRule
from .scanners import TimeValue

MISSING = "missing"
INVALID = "invalid"


@dataclass(frozen=True)
class ValidationFailure:
    kind: str
    arg: CommandArgDef
    detail: Optional[str] = None

    def describe(self, lang: Lang) -> str:
        name = self.arg.display_name(lang)
        if self.kind == MISSING:
            return lang.get_string("pipeline.arg_missing", name)
        return lang.get_string("pipeline.arg_invalid", name, self.detail or "")


def is_missing(value: Any) -> bool:
    return value is None or value == ""


def validate(
    value: Any, arg: CommandArgDef, lang: Lang
) -> Union[Any, ValidationFailure]:
    """Apply every rule declared on `arg`; return the value or the first failure.

    Rules other than NON_NULL are skipped for an absent value.
    """

    if is_missing(value):
        if arg.has_rule(ValidationRule.NON_NULL):
            return ValidationFailure(MISSING, arg)
        return value

    if arg.has_rule(ValidationRule.IS_ARRAY) and not isinstance(value, list):
        return ValidationFailure(INVALID, arg, lang.get_string("validation.not_array"))

    if isinstance(value, TimeValue):
        if arg.has_rule(ValidationRule.TIME_DISTANCE_ONLY) and not value.is_distance:
            return ValidationFailure(
                INVALID, arg, lang.get_string("validation.time_distance_only")
            )
        if (
            arg.has_rule(ValidationRule.NON_ZERO_SHIFT)
            and value.is_distance
            and value.shift == timedelta(0)
        ):
            return ValidationFailure(INVALID, arg, lang.get_string("validation.zero_shift"))

    if arg.has_rule(ValidationRule.VALID_TEXT_CHANNELS):
        channels = value if isinstance(value, list) else [value]
        for channel in channels:
            if not isinstance(channel, ChannelInfo) or not channel.is_text:
                label = channel.name if isinstance(channel, ChannelInfo) else str(channel)
                return ValidationFailure(
                    INVALID, arg, lang.get_string("validation.not_text_channel", label)
                )

    return value
