import pytest

from job_harvester.models import JobPosting
from job_harvester.salary import (
    SalaryRange,
    detect_period,
    enrich_posting,
    normalize_salary,
    parse_range,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("$50,000 - $70,000", SalaryRange(50000, 70000)),
        ("$45K", SalaryRange(45000, 45000)),
        ("$40k - $55k a year", SalaryRange(40000, 55000)),
        ("£30,000 to £35,000", SalaryRange(30000, 35000)),
        ("$18.50 - $22.75 an hour", SalaryRange(18.5, 22.75)),
        ("$25 - 30 an hour", SalaryRange(25, 30)),
        ("$50-70K", SalaryRange(50000, 70000)),
        ("$90 - 120k a year", SalaryRange(90000, 120000)),
        ("From $60,000 a year", SalaryRange(60000, 60000)),
        ("Competitive", SalaryRange(None, None)),
        ("Health insurance, 3 weeks PTO", SalaryRange(None, None)),
        ("", SalaryRange(None, None)),
        (None, SalaryRange(None, None)),
    ],
)
def test_parse_range(raw, expected):
    assert parse_range(raw) == expected


def test_parse_range_ignores_bare_numbers_outside_a_range():
    # "2" and "5" are not compensation amounts
    assert parse_range("2 openings, 5 days a week, $70,000") == SalaryRange(70000, 70000)


def test_parse_range_min_not_above_max():
    result = parse_range("$90,000 - $60,000")
    assert result.min == 60000
    assert result.max == 90000


@pytest.mark.parametrize(
    "raw, period",
    [
        ("$25 an hour", "hour"),
        ("$200 per day", "day"),
        ("$1,500 a week", "week"),
        ("$5,000 a month", "month"),
        ("$80,000 a year", "year"),
        ("$80,000", None),
        ("$90,000 - $110,000 a year; on-call shifts billed per hour", "year"),
        ("$30 per hour, reviewed annually", "hour"),
        ("Paid weekly", "week"),
    ],
)
def test_detect_period(raw, period):
    assert detect_period(raw) == period


def test_normalize_salary_annualizes_hourly():
    result = normalize_salary("$25 - $30 an hour")
    assert (result.min, result.max) == (52000, 62400)
    assert result.period == "hour"
    assert result.period_assumed is False


def test_normalize_salary_assumes_yearly_without_marker():
    result = normalize_salary("$50,000 - $70,000")
    assert (result.min, result.max) == (50000, 70000)
    assert result.period == "year"
    assert result.period_assumed is True


def test_normalize_salary_can_keep_native_period():
    result = normalize_salary("$25 - $30 an hour", normalize_to_annual=False)
    assert (result.min, result.max) == (25, 30)
    assert result.period == "hour"


def test_enrich_posting_records_period_provenance():
    posting = JobPosting(
        title="Junior Python Developer",
        company="Acme Corp",
        url="https://www.indeed.com/viewjob?jk=abc123",
        salary_raw="$5,000 a month",
    )
    enrich_posting(posting)
    assert posting.salary_min == 60000
    assert posting.salary_max == 60000
    assert posting.extracted_data["salary_period"] == "month"
    assert posting.extracted_data["salary_period_assumed"] is False


def test_enrich_posting_without_amount_leaves_range_empty():
    posting = JobPosting(
        title="Junior Python Developer",
        company="Acme Corp",
        url="https://www.indeed.com/viewjob?jk=abc123",
        salary_raw="Competitive",
    )
    enrich_posting(posting)
    assert posting.salary_min is None
    assert posting.salary_max is None


def test_normalize_salary_uses_period_next_to_the_amount():
    result = normalize_salary("$90,000 - $110,000 a year; on-call shifts billed per hour")
    assert (result.min, result.max) == (90000, 110000)
    assert result.period == "year"
