"""Argument scanners.

A scanner turns the leading raw tokens into one typed value and reports how
many tokens it used. Scanners never raise for bad user input; they return a
`ScanFailure` with a localized reason instead. Validation rules are applied
later, so scanners accept anything they can parse.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Callable, Optional, Sequence, Union

from ..core.guild_sync import ChannelInfo, OrganizationSnapshot
from ..core.localization import Lang
from ..integrations.chat.models import ChatMessage
from .arg_def import CommandArgDef

_OFFSET_RE = re.compile(r"([+-]?)((?:\d+[wdhms])+)", re.IGNORECASE)
_OFFSET_PART_RE = re.compile(r"(\d+)([wdhms])", re.IGNORECASE)
_OFFSET_UNITS = {
    "w": timedelta(weeks=1),
    "d": timedelta(days=1),
    "h": timedelta(hours=1),
    "m": timedelta(minutes=1),
    "s": timedelta(seconds=1),
}
_CHANNEL_MENTION_RE = re.compile(r"<#([^|>]+)(?:\|[^>]*)?>")


@dataclass(frozen=True)
class ScanContext:
    lang: Lang
    message: ChatMessage
    snapshot: Optional[OrganizationSnapshot] = None
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class ScanResult:
    value: Any
    consumed: int


@dataclass(frozen=True)
class ScanFailure:
    reason: str


ScanOutcome = Union[ScanResult, ScanFailure]
Scanner = Callable[[Sequence[str], CommandArgDef, ScanContext], ScanOutcome]


@dataclass(frozen=True)
class TimeValue:
    """A signed offset back from now, or an absolute moment."""

    shift: Optional[timedelta] = None
    timestamp: Optional[datetime] = None

    @property
    def is_distance(self) -> bool:
        return self.shift is not None

    def total_shift(self, reference: datetime) -> timedelta:
        if self.shift is not None:
            return self.shift
        assert self.timestamp is not None
        return reference - self.timestamp

    def cutoff(self, reference: datetime) -> datetime:
        return reference - self.total_shift(reference)


def simple_scanner(
    tokens: Sequence[str], arg: CommandArgDef, context: ScanContext
) -> ScanOutcome:
    if not tokens:
        return ScanResult(None, 0)
    token = tokens[0]
    folded = token.casefold()
    for keywords_id, value in arg.predefined.items():
        keywords = {keyword.casefold() for keyword in context.lang.get_list(keywords_id)}
        if folded in keywords:
            return ScanResult(value, 1)
    return ScanResult(token, 1)


def array_scanner(
    tokens: Sequence[str], arg: CommandArgDef, context: ScanContext
) -> ScanOutcome:
    items, consumed = consume_comma_run(tokens)
    return ScanResult(items, consumed)


def time_scanner(
    tokens: Sequence[str], arg: CommandArgDef, context: ScanContext
) -> ScanOutcome:
    if not tokens:
        return ScanResult(None, 0)
    token = tokens[0]
    value = parse_time_value(token, now=context.now)
    if value is None:
        return ScanFailure(context.lang.get_string("scan.bad_time", token))
    return ScanResult(value, 1)


def channels_scanner(
    tokens: Sequence[str], arg: CommandArgDef, context: ScanContext
) -> ScanOutcome:
    references, consumed = consume_comma_run(tokens)
    if consumed == 0:
        return ScanResult(None, 0)
    snapshot = context.snapshot
    if snapshot is None:
        return ScanFailure(context.lang.get_string("scan.no_organization"))
    channels: list[ChannelInfo] = []
    for reference in references:
        channel = resolve_channel_reference(reference, snapshot)
        if channel is None:
            return ScanFailure(context.lang.get_string("scan.unknown_channel", reference))
        if channel not in channels:
            channels.append(channel)
    return ScanResult(channels, consumed)


def consume_comma_run(tokens: Sequence[str]) -> tuple[list[str], int]:
    """Collect a comma-separated run such as `a,b`, `a, b` or `a ,b`."""

    items: list[str] = []
    consumed = 0
    expect_more = False
    for token in tokens:
        if consumed > 0 and not expect_more and not token.startswith(","):
            break
        consumed += 1
        expect_more = token.endswith(",")
        items.extend(part.strip() for part in token.split(",") if part.strip())
    return items, consumed


def parse_time_value(token: str, *, now: datetime) -> Optional[TimeValue]:
    text = token.strip()
    if not text:
        return None
    match = _OFFSET_RE.fullmatch(text)
    if match is not None:
        total = timedelta()
        try:
            for amount, unit in _OFFSET_PART_RE.findall(match.group(2)):
                total += int(amount) * _OFFSET_UNITS[unit.lower()]
        except OverflowError:
            return None
        if match.group(1) == "-":
            total = -total
        if not _shift_in_range(now, total):
            return None
        return TimeValue(shift=total)

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        parsed = None
    if parsed is not None:
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return TimeValue(timestamp=parsed)

    try:
        clock = time.fromisoformat(text)
    except ValueError:
        return None
    today: date = now.astimezone(timezone.utc).date()
    return TimeValue(
        timestamp=datetime.combine(today, clock).replace(
            tzinfo=clock.tzinfo or timezone.utc
        )
    )


def _shift_in_range(now: datetime, shift: timedelta) -> bool:
    """Offsets are applied both backwards (cutoffs) and forwards (expiry)."""

    try:
        now - shift
        now + shift
    except OverflowError:
        return False
    return True


def resolve_channel_reference(
    reference: str, snapshot: OrganizationSnapshot
) -> Optional[ChannelInfo]:
    text = reference.strip()
    mention = _CHANNEL_MENTION_RE.fullmatch(text)
    if mention is not None:
        return snapshot.channel(mention.group(1))
    if text.startswith("#") and len(text) > 1:
        return snapshot.find_channel_by_name(text[1:])
    return snapshot.channel(text)
