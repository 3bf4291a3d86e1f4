"""
Salary Normalizer - turns free-text compensation into numeric ranges
"""

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Tuple, Union

if TYPE_CHECKING:
    from job_harvester.models import JobPosting

Number = Union[int, float]

# "$50,000", "$18.50", "£40k", "45K" ... currency and k-suffix are both optional
# in the pattern; _amounts() decides which matches count.
_TOKEN_RE = re.compile(
    r"(?P<currency>[$£€])?\s?"
    r"(?P<number>\d{1,3}(?:,\d{3})+|\d+)(?P<decimal>\.\d+)?"
    r"(?:\s?(?P<k>[kK])(?![a-zA-Z]))?"
)
_RANGE_SEPARATOR_RE = re.compile(r"^\s*(?:-|–|—|to)\s*$", re.IGNORECASE)

_PERIOD_PATTERNS = [
    ("hour", re.compile(r"\b(?:an?|per|/)\s*(?:hour|hr)\b|\bhourly\b|/\s*hr\b", re.IGNORECASE)),
    ("day", re.compile(r"\b(?:an?|per|/)\s*day\b|\bdaily\b", re.IGNORECASE)),
    ("week", re.compile(r"\b(?:an?|per|/)\s*(?:week|wk)\b|\bweekly\b", re.IGNORECASE)),
    ("month", re.compile(r"\b(?:an?|per|/)\s*(?:month|mo)\b|\bmonthly\b", re.IGNORECASE)),
    ("year", re.compile(r"\b(?:an?|per|/)\s*(?:year|yr|annum)\b|\bannual(?:ly)?\b|\byearly\b", re.IGNORECASE)),
]

ANNUAL_MULTIPLIERS = {
    "hour": 2080,
    "day": 260,
    "week": 52,
    "month": 12,
    "year": 1,
}


@dataclass(frozen=True)
class SalaryRange:
    min: Optional[Number] = None
    max: Optional[Number] = None

    @property
    def is_empty(self) -> bool:
        return self.min is None and self.max is None


@dataclass(frozen=True)
class NormalizedSalary:
    min: Optional[Number]
    max: Optional[Number]
    period: Optional[str]
    period_assumed: bool


def _as_number(value: float) -> Number:
    if float(value).is_integer():
        return int(value)
    return round(value, 2)


def _amounts(text: str) -> List[Tuple[float, int, int]]:
    """Accepted amounts as (value, start, end) spans."""
    amounts: List[Tuple[float, int, int]] = []
    last_had_k = False
    for match in _TOKEN_RE.finditer(text):
        currency = match.group("currency")
        k_suffix = match.group("k")
        follows_range = (
            bool(amounts)
            and _RANGE_SEPARATOR_RE.match(text[amounts[-1][2]:match.start()]) is not None
        )
        if not (currency or k_suffix or follows_range):
            continue
        value = float(match.group("number").replace(",", "") + (match.group("decimal") or ""))
        if k_suffix:
            # "$50-70K": the suffix covers both ends of the range
            if follows_range and not last_had_k and amounts[-1][0] <= value:
                low, start, end = amounts[-1]
                amounts[-1] = (low * 1000, start, end)
            value *= 1000
        amounts.append((value, match.start(), match.end()))
        last_had_k = bool(k_suffix)
    return amounts


def parse_range(raw_text: Optional[str]) -> SalaryRange:
    """
    Extract a (min, max) range from salary text.

    "$50,000 - $70,000" -> (50000, 70000); "$45K" -> (45000, 45000);
    text without a currency amount or k-figure -> (None, None).
    """
    if not raw_text:
        return SalaryRange()
    values = [value for value, _, _ in _amounts(raw_text)]
    if not values:
        return SalaryRange()
    return SalaryRange(min=_as_number(min(values)), max=_as_number(max(values)))


def detect_period(raw_text: Optional[str]) -> Optional[str]:
    """
    Pay period named in the text, or None.

    When several period words appear, the one nearest an amount wins, so
    "$90,000 a year, on-call billed per hour" is yearly.
    """
    if not raw_text:
        return None
    found = [
        (match.start(), match.end(), period)
        for period, pattern in _PERIOD_PATTERNS
        for match in pattern.finditer(raw_text)
    ]
    if not found:
        return None
    amounts = _amounts(raw_text)
    if not amounts:
        return min(found)[2]

    def distance(item: Tuple[int, int, str]) -> int:
        start, end, _ = item
        return min(max(start - a_end, a_start - end, 0) for _, a_start, a_end in amounts)

    return min(found, key=lambda item: (distance(item), item[0]))[2]


def normalize_salary(raw_text: Optional[str], normalize_to_annual: bool = True) -> NormalizedSalary:
    """Parse a salary string and, by default, convert it to an annual figure."""
    parsed = parse_range(raw_text)
    period = detect_period(raw_text)
    period_assumed = period is None
    if parsed.is_empty:
        return NormalizedSalary(None, None, period, period_assumed)

    if not normalize_to_annual:
        return NormalizedSalary(parsed.min, parsed.max, period or "year", period_assumed)

    multiplier = ANNUAL_MULTIPLIERS.get(period or "year", 1)
    return NormalizedSalary(
        min=_as_number(parsed.min * multiplier),
        max=_as_number(parsed.max * multiplier),
        period=period or "year",
        period_assumed=period_assumed,
    )


def enrich_posting(posting: "JobPosting", normalize_to_annual: bool = True) -> "JobPosting":
    """Fill salary_min/salary_max from the posting's raw salary text (in place)."""
    raw_text = posting.salary_raw or posting.extracted_data.get("raw_salary")
    if not raw_text:
        return posting
    normalized = normalize_salary(raw_text, normalize_to_annual)
    if normalized.min is None:
        return posting
    posting.salary_min = normalized.min
    posting.salary_max = normalized.max
    posting.extracted_data["salary_period"] = normalized.period
    posting.extracted_data["salary_period_assumed"] = normalized.period_assumed
    return posting
