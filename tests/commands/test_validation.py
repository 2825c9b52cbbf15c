from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from crossbot.commands.arg_def import CommandArgDef, ValidationRule
from crossbot.commands.scanners import TimeValue, simple_scanner
from crossbot.commands.validation import INVALID, MISSING, ValidationFailure, validate
from crossbot.core.guild_sync import ChannelInfo


def _arg(*rules: ValidationRule) -> CommandArgDef:
    return CommandArgDef("time", simple_scanner, "commands.clean.args.time", rules=frozenset(rules))


@pytest.mark.parametrize("value", [None, ""])
def test_missing_value_fails_only_non_null(lang_manager, value) -> None:
    lang = lang_manager.default

    required = validate(value, _arg(ValidationRule.NON_NULL), lang)
    optional = validate(value, _arg(ValidationRule.IS_ARRAY), lang)

    assert isinstance(required, ValidationFailure)
    assert required.kind == MISSING
    assert required.describe(lang) == "You did not specify any value for argument: time"
    assert optional == value


def test_is_array(lang_manager) -> None:
    lang = lang_manager.default
    arg = _arg(ValidationRule.IS_ARRAY)

    assert validate(["a"], arg, lang) == ["a"]
    failure = validate("a", arg, lang)
    assert failure.kind == INVALID
    assert failure.describe(lang) == "Wrong value for argument time: a list of values is expected"


def test_time_rules(lang_manager) -> None:
    lang = lang_manager.default
    arg = _arg(ValidationRule.TIME_DISTANCE_ONLY, ValidationRule.NON_ZERO_SHIFT)
    moment = TimeValue(timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc))

    assert validate(TimeValue(shift=timedelta(minutes=1)), arg, lang).shift == timedelta(minutes=1)
    assert validate(TimeValue(shift=timedelta(0)), arg, lang).detail == (
        "the time offset must not be zero"
    )
    assert validate(moment, arg, lang).detail == (
        "a time offset like 10m or 1h30m is expected, not a date"
    )
    assert validate(moment, _arg(ValidationRule.NON_ZERO_SHIFT), lang) is moment


def test_valid_text_channels(lang_manager) -> None:
    lang = lang_manager.default
    arg = _arg(ValidationRule.VALID_TEXT_CHANNELS)
    text = ChannelInfo(channel_id="1", name="general")
    voice = ChannelInfo(channel_id="2", name="Lounge", kind="voice")

    assert validate([text], arg, lang) == [text]
    assert validate([text, voice], arg, lang).detail == '"Lounge" is not a text channel'
    assert validate("general", arg, lang).detail == '"general" is not a text channel'
