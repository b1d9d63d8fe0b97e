"""Slot extraction for the quote dialogue.

An extractor reads the whole conversation (users restate and correct
earlier answers) and returns a PartialDraft with the fields it is confident
about. When a field is mentioned more than once, the most recent textual
occurrence wins, both across turns and inside a single turn.

Implementations:
- PatternSlotExtractor: deterministic regular-expression rules.
- LLMSlotExtractor: constrained structured output through the LLM gateway.
- HybridSlotExtractor: LLM first; pattern matches from the latest turn override.

Exports:
    SlotExtractor, PatternSlotExtractor, LLMSlotExtractor,
    HybridSlotExtractor, create_slot_extractor.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from typing import Callable, Iterable, Protocol

import structlog

from src.swiftship.agents.quote.prompts import EXTRACTION_SYSTEM_PROMPT, format_transcript
from src.swiftship.agents.quote.schemas import PackageType, PartialDraft, QuoteDraft, ServiceLevel
from src.swiftship.agents.schemas import Message
from src.swiftship.config import ExtractionMode
from src.swiftship.services.llm import LLMGateway, LLMResponseFormatError

logger = structlog.get_logger(__name__)


class SlotExtractor(Protocol):
    async def extract(self, conversation: list[Message], current: QuoteDraft) -> PartialDraft: ...


# ── Pattern rules ─────────────────────────────────────────────────────────────

_NUMBER = r"(\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+(?:\.\d+)?)"

_WEIGHT_RE = re.compile(
    _NUMBER + r"\s*(metric\s+tons?|tonnes?|tons?|t|kgs?|kilograms?|kilos?|lbs?|pounds?)\b",
    re.IGNORECASE,
)
_VOLUME_RE = re.compile(
    _NUMBER + r"\s*(?:cubic\s+met(?:er|re)s?\b|m3\b|m³|cbm\b)",
    re.IGNORECASE,
)
_PALLET_RE = re.compile(r"\b(\d+)\s*(?:pallets?|skids?)\b", re.IGNORECASE)

_TYPE_RULES: tuple[tuple[re.Pattern, PackageType | None], ...] = (
    (
        re.compile(r"\b(?:less[\s_-]than[\s_-]truck[\s_-]?load|ltl|partial\s+(?:load|truckload))\b", re.I),
        PackageType.LESS_THAN_TRUCKLOAD,
    ),
    (
        re.compile(r"\bfull[\s_-]?truck[\s_-]?load\b|\bftl\b|(?<!than[\s_-])\btruck[\s_-]?load\b", re.I),
        PackageType.FULL_TRUCKLOAD,
    ),
    (re.compile(r"\bsea[\s_-]container\b", re.I), PackageType.SEA_CONTAINER),
    (re.compile(r"\bbulk(?:[\s_-](?:freight|cargo|load))?\b", re.I), PackageType.BULK_FREIGHT),
    # Resolved against the sea qualifier of the same message.
    (re.compile(r"\bcontainers?\b", re.I), None),
)
_SEA_QUALIFIER_RE = re.compile(r"\b(?:sea|ocean|vessel|maritime|port)\b", re.I)

_HAZARD_RE = re.compile(
    r"\b(non[\s-]?hazardous|not\s+hazardous|no\s+hazardous|non[\s-]?hazmat|no\s+hazmat|not\s+dangerous)\b"
    r"|\b(hazardous|hazmat|dangerous\s+goods|flammable|corrosive)\b",
    re.IGNORECASE,
)

_LEVEL = r"(express|standard|eco|economy)"
# Bare level words ("standard pallets", "eco-friendly") only count next to a
# service word or a choice phrase.
_SERVICE_RULES: tuple[re.Pattern, ...] = (
    re.compile(r"\b" + _LEVEL + r"[\s-]+(?:freight|shipping|service|delivery|option|rate|level|tier|plan)\b", re.I),
    re.compile(
        r"\b(?:do|go\s+with|switch\s+to|change\s+(?:it\s+)?to|use|choose|pick|prefer|want|take|opt\s+for|make\s+it)"
        r"\s+(?:the\s+|an?\s+)?" + _LEVEL + r"\b(?!-|\s+(?:pallets?|containers?|boxes|crates?|packag\w*|size|sized)\b)",
        re.I,
    ),
    re.compile(r"\b" + _LEVEL + r"\s+(?:is\s+fine|is\s+ok(?:ay)?|works|instead|please)\b", re.I),
    re.compile(r"^\s*" + _LEVEL + r"\s*[.!]?\s*$", re.I),
)
_SERVICE_LEVELS = {
    "express": ServiceLevel.EXPRESS,
    "standard": ServiceLevel.STANDARD,
    "eco": ServiceLevel.ECO,
    "economy": ServiceLevel.ECO,
}

# Address values end at sentence punctuation, at a comma not followed by a
# state code, or before scheduling words.
_ADDRESS_END = (
    r"(?=$|[.;!?\n]|,(?!\s*(?-i:[A-Z]{2})\b)|\s+(?:on|by|for|from|with|and|next|this|tomorrow|today|"
    r"pickup|pick\s+up|departing|leaving|within|in\s+\d|asap|please)\b)"
)
_ADDRESS = r"([^.;!?\n]+?)"

_ROUTE_RULES: tuple[tuple[re.Pattern, tuple[str, ...]], ...] = (
    (re.compile(r"\bfrom\s+" + _ADDRESS + r"\s+to\s+" + _ADDRESS + _ADDRESS_END, re.I), ("origin", "destination")),
    (re.compile(r"\b(?:pick[\s-]?up|collect(?:ion)?)\s+(?:from|at|in)\s+" + _ADDRESS + _ADDRESS_END, re.I), ("origin",)),
    (re.compile(r"\borigin(?:\s+is|\s*:)\s*" + _ADDRESS + _ADDRESS_END, re.I), ("origin",)),
    (
        re.compile(r"\b(?:deliver(?:y|ed)?|ship(?:ping|ped)?|send(?:ing)?)\s+to\s+" + _ADDRESS + _ADDRESS_END, re.I),
        ("destination",),
    ),
    (re.compile(r"\bdestination(?:\s+is|\s*:)\s*" + _ADDRESS + _ADDRESS_END, re.I), ("destination",)),
)
_NOT_AN_ADDRESS_RE = re.compile(
    r"^(?:\d{1,2}(?::\d{2})?\s*(?:am|pm)|today|tomorrow|next\b|monday|tuesday|wednesday|thursday|"
    r"friday|saturday|sunday|the\s+(?:morning|afternoon|evening)|\d{4}-\d{2}-\d{2})",
    re.IGNORECASE,
)

_MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}
_MONTH = r"(jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|aug(?:ust)?|sept?(?:ember)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)"
_WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

_ISO_DATE_RE = re.compile(r"\b(\d{4})-(\d{1,2})-(\d{1,2})\b")
_SLASH_DATE_RE = re.compile(r"\b(\d{1,2})/(\d{1,2})(?:/(\d{2,4}))?\b")
_MONTH_DAY_RE = re.compile(r"\b" + _MONTH + r"\.?\s+(\d{1,2})(?:st|nd|rd|th)?\b(?:,?\s+(\d{4}))?", re.I)
_DAY_MONTH_RE = re.compile(r"\b(\d{1,2})(?:st|nd|rd|th)?\s+(?:of\s+)?" + _MONTH + r"\b(?:,?\s+(\d{4}))?", re.I)
_RELATIVE_RE = re.compile(
    r"\b(day\s+after\s+tomorrow|tomorrow|today|in\s+(\d{1,2})\s+days?|(?:(next|this)\s+)?("
    + "|".join(_WEEKDAYS)
    + r"))\b",
    re.I,
)
_DELIVERY_CONTEXT_RE = re.compile(r"(?:deliver\w*|arriv\w*|due)\s+(?:by|before|on)\s+$", re.I)

_WINDOW_RANGE_RE = re.compile(
    r"\bbetween\s+(\d{1,2}(?::\d{2})?\s*(?:am|pm)?)\s+and\s+(\d{1,2}(?::\d{2})?\s*(?:am|pm))",
    re.I,
)
_WINDOW_PART_RE = re.compile(r"\b(morning|afternoon|evening)\b", re.I)


def _to_float(raw: str) -> float:
    return float(raw.replace(",", ""))


def _weight_in_tons(amount: float, unit: str) -> float:
    unit = unit.lower()
    if unit.startswith(("kg", "kilo")):
        return round(amount / 1000.0, 3)
    if unit.startswith(("lb", "pound")):
        return round(amount * 0.00045359237, 3)
    return amount


def _message_date(message: Message, fallback: date) -> date:
    """Reference date for relative expressions: the message timestamp if any."""
    metadata = message.metadata or {}
    for key in ("timestamp", "sentAt", "createdAt"):
        raw = metadata.get(key)
        if isinstance(raw, str):
            try:
                return datetime.fromisoformat(raw.replace("Z", "+00:00")).date()
            except ValueError:
                continue
    return fallback


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _upcoming(month: int, day: int, year: int | None, reference: date) -> date | None:
    if year is not None:
        if year < 100:
            year += 2000
        return _safe_date(year, month, day)
    candidate = _safe_date(reference.year, month, day)
    if candidate is not None and candidate < reference:
        candidate = _safe_date(reference.year + 1, month, day)
    return candidate


def _relative_date(match: re.Match, reference: date) -> date | None:
    phrase = match.group(1).lower()
    if phrase.startswith("day after"):
        return reference + timedelta(days=2)
    if phrase == "tomorrow":
        return reference + timedelta(days=1)
    if phrase == "today":
        return reference
    if match.group(2):
        return reference + timedelta(days=int(match.group(2)))
    # "friday", "this friday" and "next friday" all mean the coming one.
    weekday = _WEEKDAYS.index(match.group(4).lower())
    ahead = (weekday - reference.weekday()) % 7 or 7
    return reference + timedelta(days=ahead)


def _date_mentions(text: str, reference: date) -> list[tuple[int, date]]:
    mentions: list[tuple[int, date]] = []

    for m in _ISO_DATE_RE.finditer(text):
        value = _safe_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        if value:
            mentions.append((m.start(), value))
    for m in _SLASH_DATE_RE.finditer(text):
        value = _upcoming(int(m.group(1)), int(m.group(2)), int(m.group(3)) if m.group(3) else None, reference)
        if value:
            mentions.append((m.start(), value))
    for m in _MONTH_DAY_RE.finditer(text):
        month = _MONTHS[m.group(1)[:3].lower()]
        value = _upcoming(month, int(m.group(2)), int(m.group(3)) if m.group(3) else None, reference)
        if value:
            mentions.append((m.start(), value))
    for m in _DAY_MONTH_RE.finditer(text):
        month = _MONTHS[m.group(2)[:3].lower()]
        value = _upcoming(month, int(m.group(1)), int(m.group(3)) if m.group(3) else None, reference)
        if value:
            mentions.append((m.start(), value))
    for m in _RELATIVE_RE.finditer(text):
        value = _relative_date(m, reference)
        if value:
            mentions.append((m.start(), value))

    return [
        (position, value)
        for position, value in mentions
        if not _DELIVERY_CONTEXT_RE.search(text[max(0, position - 20):position])
    ]


def _clean_address(value: str) -> str | None:
    value = re.sub(r"\s+", " ", value).strip(" ,'\"")
    value = re.sub(r"^(?:the\s+)?(?:city\s+of\s+)", "", value, flags=re.I)
    if not value or _NOT_AN_ADDRESS_RE.match(value):
        return None
    return value


class _Latest:
    """Tracks the latest (message index, position) occurrence per field."""

    def __init__(self) -> None:
        self._values: dict[str, tuple[tuple[int, int], object]] = {}

    def offer(self, field: str, order: tuple[int, int], value: object) -> None:
        if value is None:
            return
        current = self._values.get(field)
        if current is None or order >= current[0]:
            self._values[field] = (order, value)

    def build(self) -> PartialDraft:
        return PartialDraft(**{field: value for field, (_, value) in self._values.items()})

    def turns(self) -> dict[str, int]:
        """Message index each field was last mentioned in."""
        return {field: order[0] for field, (order, _) in self._values.items()}


class PatternSlotExtractor:
    """Regular-expression extraction over the user turns.

    Args:
        today: Clock for relative dates ("tomorrow") when a message has no
            timestamp in its metadata.
    """

    def __init__(self, today: Callable[[], date] = date.today) -> None:
        self._today = today

    async def extract(self, conversation: list[Message], current: QuoteDraft) -> PartialDraft:
        return self.extract_sync(conversation)

    def extract_sync(self, conversation: Iterable[Message]) -> PartialDraft:
        partial, _ = self.extract_with_turns(conversation)
        return partial

    def extract_with_turns(self, conversation: Iterable[Message]) -> tuple[PartialDraft, dict[str, int]]:
        """Like extract_sync, also returning the message index behind each field."""
        latest = _Latest()
        fallback_date = self._today()

        for index, message in enumerate(conversation):
            if message.role != "user" or not message.content:
                continue
            text = message.content
            self._scan_package(index, text, latest)
            self._scan_route(index, text, latest)
            self._scan_schedule(index, text, _message_date(message, fallback_date), latest)

            for pattern in _SERVICE_RULES:
                for m in pattern.finditer(text):
                    latest.offer("service_level", (index, m.start(1)), _SERVICE_LEVELS[m.group(1).lower()])

        return latest.build(), latest.turns()

    @staticmethod
    def _scan_package(index: int, text: str, latest: _Latest) -> None:
        for m in _WEIGHT_RE.finditer(text):
            latest.offer("weight_tons", (index, m.start()), _weight_in_tons(_to_float(m.group(1)), m.group(2)))
        for m in _VOLUME_RE.finditer(text):
            latest.offer("volume_m3", (index, m.start()), _to_float(m.group(1)))
        for m in _PALLET_RE.finditer(text):
            latest.offer("pallet_count", (index, m.start()), int(m.group(1)))
        for m in _HAZARD_RE.finditer(text):
            latest.offer("hazardous", (index, m.start()), m.group(2) is not None)

        sea = bool(_SEA_QUALIFIER_RE.search(text))
        claimed: list[tuple[int, int]] = []
        for pattern, package_type in _TYPE_RULES:
            for m in pattern.finditer(text):
                if any(start <= m.start() < end for start, end in claimed):
                    continue
                claimed.append(m.span())
                if package_type is None:
                    package_type_found = PackageType.SEA_CONTAINER if sea else PackageType.FULL_TRUCKLOAD
                else:
                    package_type_found = package_type
                latest.offer("package_type", (index, m.start()), package_type_found)

    @staticmethod
    def _scan_route(index: int, text: str, latest: _Latest) -> None:
        for pattern, fields in _ROUTE_RULES:
            for m in pattern.finditer(text):
                for group, field in enumerate(fields, start=1):
                    address = _clean_address(m.group(group))
                    latest.offer(f"{field}_address", (index, m.start(group)), address)

    @staticmethod
    def _scan_schedule(index: int, text: str, reference: date, latest: _Latest) -> None:
        for position, value in _date_mentions(text, reference):
            latest.offer("pickup_date", (index, position), value)
        for m in _WINDOW_RANGE_RE.finditer(text):
            window = f"{m.group(1).strip()}-{m.group(2).strip()}".lower().replace(" ", "")
            latest.offer("pickup_window", (index, m.start()), window)
        for m in _WINDOW_PART_RE.finditer(text):
            latest.offer("pickup_window", (index, m.start()), m.group(1).lower())


# ── LLM extraction ────────────────────────────────────────────────────────────


class LLMSlotExtractor:
    """Structured extraction through the LLM gateway.

    Raises LLMResponseFormatError when the model output does not validate;
    other gateway errors propagate unchanged.
    """

    def __init__(self, llm: LLMGateway, today: Callable[[], date] = date.today) -> None:
        self._llm = llm
        self._today = today

    async def extract(self, conversation: list[Message], current: QuoteDraft) -> PartialDraft:
        system = EXTRACTION_SYSTEM_PROMPT.format(
            today=self._today().isoformat(),
            current=current.model_dump_json(by_alias=True, exclude_none=True),
        )
        return await self._llm.extract(
            [
                {"role": "system", "content": system},
                {"role": "user", "content": format_transcript(conversation)},
            ],
            PartialDraft,
        )


class HybridSlotExtractor:
    """LLM extraction combined with deterministic pattern matches.

    A pattern match replaces the LLM value only when it comes from the
    latest user turn. Older matches only fill fields the LLM left empty.
    A malformed LLM answer degrades to pattern-only extraction.
    """

    def __init__(self, llm_extractor: LLMSlotExtractor, pattern_extractor: PatternSlotExtractor) -> None:
        self._llm = llm_extractor
        self._pattern = pattern_extractor

    async def extract(self, conversation: list[Message], current: QuoteDraft) -> PartialDraft:
        try:
            from_llm = await self._llm.extract(conversation, current)
        except LLMResponseFormatError as exc:
            logger.warning("llm_extraction_malformed", error=str(exc))
            from_llm = PartialDraft()
        from_patterns, turns = self._pattern.extract_with_turns(conversation)
        latest_turn = _latest_user_turn(conversation)

        updates = {
            field: getattr(from_patterns, field)
            for field, turn in turns.items()
            if turn == latest_turn or getattr(from_llm, field) is None
        }
        return from_llm.model_copy(update=updates)


def _latest_user_turn(conversation: list[Message]) -> int | None:
    for index in range(len(conversation) - 1, -1, -1):
        if conversation[index].role == "user":
            return index
    return None


def create_slot_extractor(
    mode: ExtractionMode,
    llm: LLMGateway | None,
    today: Callable[[], date] = date.today,
) -> SlotExtractor:
    pattern = PatternSlotExtractor(today=today)
    if mode == ExtractionMode.pattern or llm is None:
        return pattern
    if mode == ExtractionMode.llm:
        return LLMSlotExtractor(llm, today=today)
    return HybridSlotExtractor(LLMSlotExtractor(llm, today=today), pattern)
