"""
DRIVE_DECISION_PROJECT
Copyright (c) 2026. All rights reserved.
File: drive_decision/services/offer_parser.py
Description: Extracts the passenger offer and the counteroffers from an accessibility dump.
"""

import logging
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Sequence

from rapidfuzz import fuzz

from drive_decision.core.models import Offer, OfferLabel

from .quantity_patterns import (
    AMOUNT,
    ANCHOR_MATCH_THRESHOLD,
    DEFAULT_CURRENCY_TOKENS,
    DOLLAR_PATTERN,
    PASSENGER_ANCHORS,
)

logger = logging.getLogger(__name__)

__all__ = ['DumpHeader', 'parse_dump_header', 'parse_amount', 'OfferParser']

# Written by the accessibility collaborator when the foreground window has no root node.
ROOT_MISSING_MARKER = '(sin rootInActiveWindow)'
_HEADER_SEPARATOR = '-----'


@dataclass(frozen=True)
class DumpHeader:
    package: Optional[str]
    class_name: Optional[str]
    text_count: Optional[int]
    body: str

    @property
    def root_missing(self) -> bool:
        return self.package == ROOT_MISSING_MARKER


def parse_dump_header(text: str) -> DumpHeader:
    """Split the collaborator's header lines from the harvested texts.

    Dumps without a header are returned whole as the body.
    """
    text = text or ""
    package: Optional[str] = None
    class_name: Optional[str] = None
    text_count: Optional[int] = None

    lines = text.split('\n')
    body_start = 0
    for i, line in enumerate(lines[:6]):
        stripped = line.strip()
        if stripped.startswith('APP_AL_FRENTE:'):
            package = stripped.split(':', 1)[1].strip() or None
            body_start = i + 1
        elif stripped.startswith('CLASS:'):
            class_name = stripped.split(':', 1)[1].strip() or None
            body_start = i + 1
        elif stripped.startswith('TOTAL_TEXTOS:'):
            try:
                text_count = int(stripped.split(':', 1)[1].strip())
            except ValueError:
                text_count = None
            body_start = i + 1
        elif stripped == _HEADER_SEPARATOR and package is not None:
            body_start = i + 1
            break

    return DumpHeader(
        package=package,
        class_name=class_name,
        text_count=text_count,
        body='\n'.join(lines[body_start:]),
    )


def parse_amount(raw: str) -> Optional[Decimal]:
    """'70', '62,50' or '1,250.50' -> Decimal; None when unparseable.

    A final group of one or two digits is the decimal part; every other
    separator groups thousands.
    """
    if not isinstance(raw, str):
        return None
    parts = re.split(r'[.,]', raw)
    if len(parts) > 1 and len(parts[-1]) <= 2:
        raw = ''.join(parts[:-1]) + '.' + parts[-1]
    else:
        raw = ''.join(parts)
    try:
        return Decimal(raw)
    except InvalidOperation:
        return None


class OfferParser:
    """Ordered offer extraction.

    1. "accept for <currency><amount>" (English or Spanish) is the passenger
       offer; the first match wins. OCR-noisy anchor lines are matched fuzzily
       when the exact pattern fails.
    2. Every "<currency><amount>" is a counteroffer.
    3. Every "$<amount>" is a counteroffer.
    Offers are deduplicated by amount, first appearance kept.
    """

    def __init__(
        self,
        currency_tokens: Sequence[str] = DEFAULT_CURRENCY_TOKENS,
        anchors: Sequence[str] = PASSENGER_ANCHORS,
        anchor_threshold: int = ANCHOR_MATCH_THRESHOLD,
    ) -> None:
        if not currency_tokens:
            raise ValueError("currency_tokens cannot be empty")
        if not 0 <= anchor_threshold <= 100:
            raise ValueError(f"anchor_threshold must be 0-100, got {anchor_threshold}")

        self.anchors = [a.lower() for a in anchors]
        self.anchor_threshold = anchor_threshold

        currency = '|'.join(re.escape(token) for token in currency_tokens)
        anchor_alt = '|'.join(re.escape(a) for a in self.anchors)
        self.currency_pattern = re.compile(r'(?:' + currency + r')\s*\$?\s*' + AMOUNT, re.IGNORECASE)
        self.any_amount_pattern = re.compile(r'(?:' + currency + r'|\$)\s*\$?\s*' + AMOUNT, re.IGNORECASE)
        self.passenger_pattern = re.compile(
            r'(?:' + anchor_alt + r')\s*(?:' + currency + r'|\$)\s*\$?\s*' + AMOUNT,
            re.IGNORECASE,
        )

    def _match_anchor(self, fragment: str) -> bool:
        clean = re.sub(r"[^\w\s]", "", fragment).lower().strip()
        shortest = min(len(a) for a in self.anchors)
        if len(clean) < shortest * 0.6:
            return False
        if len(clean) > shortest * 3:
            return False
        return any(fuzz.partial_ratio(clean, anchor) >= self.anchor_threshold for anchor in self.anchors)

    def find_passenger_offer(self, text: str) -> Optional[Decimal]:
        m = self.passenger_pattern.search(text)
        if m:
            return parse_amount(m.group(1))

        for line in text.split('\n'):
            amount_match = self.any_amount_pattern.search(line)
            if not amount_match:
                continue
            if self._match_anchor(line[:amount_match.start()]):
                logger.debug("Passenger offer matched fuzzily in line '%s'", line.strip())
                return parse_amount(amount_match.group(1))
        return None

    def parse(self, text: str) -> List[Offer]:
        """Return all offers in first-seen order; empty list when none match."""
        if not text:
            return []

        offers: List[Offer] = []
        seen = set()

        def add(amount: Optional[Decimal], label: OfferLabel) -> None:
            if amount is None or amount <= 0 or amount in seen:
                return
            seen.add(amount)
            offers.append(Offer(amount=amount, label=label))

        add(self.find_passenger_offer(text), OfferLabel.PASSENGER)
        for m in self.currency_pattern.finditer(text):
            add(parse_amount(m.group(1)), OfferLabel.COUNTER)
        for m in DOLLAR_PATTERN.finditer(text):
            add(parse_amount(m.group(1)), OfferLabel.COUNTER)

        logger.debug("Parsed %d offer(s)", len(offers))
        return offers
