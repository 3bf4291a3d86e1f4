from typing import Any, Dict, Optional

import pytest

from job_harvester.errors import StoreError
from job_harvester.models import JobPosting
from job_harvester.persistence import PersistenceGate
from job_harvester.store import JobStore, SqliteJobStore


def _posting(**overrides: Any) -> JobPosting:
    data: Dict[str, Any] = {
        "title": "Junior Python Developer",
        "company": "Acme Corp",
        "location": "King of Prussia, PA 19406",
        "description": "Build REST APIs with Python and SQL. Docker experience a plus.",
        "url": "https://www.indeed.com/viewjob?jk=abc123",
        "salary_raw": "$50,000 - $70,000 a year",
        "salary_min": 50000,
        "salary_max": 70000,
    }
    data.update(overrides)
    return JobPosting(**data)


# ---------------------------------------------------------------------
# SqliteJobStore
# ---------------------------------------------------------------------
def test_store_round_trips_json_columns(store: SqliteJobStore):
    record = _posting(tags=["python", "sql"], extracted_data={"card_index": 0}).to_record()
    row_id = store.insert(record)

    stored = store.find_by_url("https://www.indeed.com/viewjob?jk=abc123")
    assert stored["id"] == row_id
    assert stored["tags"] == ["python", "sql"]
    assert stored["extracted_data"] == {"card_index": 0}
    assert stored["is_remote"] is False
    assert store.count() == 1


def test_store_rejects_duplicate_url(store: SqliteJobStore):
    store.insert(_posting().to_record())
    with pytest.raises(StoreError):
        store.insert(_posting(title="Other").to_record())
    assert store.count() == 1


def test_find_similar_is_case_insensitive_containment(store: SqliteJobStore):
    store.insert(_posting(title="Senior Junior Python Developer II", company="Acme Corp Inc").to_record())

    assert store.find_similar("junior python developer", "ACME CORP") is not None
    assert store.find_similar("Data Engineer", "Acme Corp") is None
    assert store.find_similar("", "Acme Corp") is None


def test_find_similar_treats_wildcards_literally(store: SqliteJobStore):
    store.insert(_posting(title="Developer", company="Acme").to_record())
    assert store.find_similar("Dev%", "Acme") is None
    assert store.find_similar("Develope_", "Acme") is None


# ---------------------------------------------------------------------
# PersistenceGate
# ---------------------------------------------------------------------
def test_save_all_saves_and_classifies(config, store):
    gate = PersistenceGate(config, store)

    report = gate.save_all([_posting()])

    assert report.saved == 1
    assert report.skipped == 0
    assert report.errors == []
    stored = store.find_by_url("https://www.indeed.com/viewjob?jk=abc123")
    assert stored["job_type"] == "full-time"
    assert stored["experience_level"] == "entry-level"
    assert stored["tags"] == ["python", "sql", "docker"]
    assert stored["posted_date"]


def test_same_url_twice_is_saved_once(config, store):
    gate = PersistenceGate(config, store)

    first = gate.save_all([_posting()])
    second = gate.save_all([_posting(title="Junior Python Developer (Remote)")])

    assert first.saved == 1
    assert second.saved == 0
    assert second.skipped == 1
    assert second.skip_reasons == {"duplicate_url": 1}
    assert store.count() == 1


def test_similar_title_and_company_is_a_duplicate(config, store):
    gate = PersistenceGate(config, store)
    gate.save_all([_posting()])

    report = gate.save_all([_posting(url="https://www.indeed.com/viewjob?jk=zzz999", company="acme corp")])

    assert report.saved == 0
    assert report.skip_reasons == {"duplicate_similar": 1}


def test_fuzzy_match_can_be_disabled(config_factory, store):
    gate = PersistenceGate(config_factory({"persistence": {"fuzzy_match": False}}), store)
    gate.save_all([_posting()])

    report = gate.save_all([_posting(url="https://www.indeed.com/viewjob?jk=zzz999")])

    assert report.saved == 1
    assert store.count() == 2


def test_invalid_posting_is_skipped(config, store):
    gate = PersistenceGate(config, store)

    report = gate.save_all([_posting(company=None)])

    assert report.saved == 0
    assert report.skipped == 1
    assert report.skip_reasons == {"invalid": 1}
    assert store.count() == 0


class FlakyStore(JobStore):
    """Fails inserts for URLs containing 'fail'."""

    def __init__(self) -> None:
        self.rows: Dict[str, Dict[str, Any]] = {}

    def find_by_url(self, url: str) -> Optional[Dict[str, Any]]:
        return self.rows.get(url)

    def find_similar(self, title: str, company: str) -> Optional[Dict[str, Any]]:
        return None

    def insert(self, record: Dict[str, Any]) -> int:
        if "fail" in record["url"]:
            raise StoreError("disk I/O error")
        self.rows[record["url"]] = record
        return len(self.rows)

    def count(self) -> int:
        return len(self.rows)


def test_store_error_on_one_record_does_not_abort_batch(config):
    store = FlakyStore()
    gate = PersistenceGate(config, store)

    report = gate.save_all([
        _posting(url="https://www.indeed.com/viewjob?jk=fail1"),
        _posting(url="https://www.indeed.com/viewjob?jk=ok2", title="Backend Developer"),
    ])

    assert report.saved == 1
    assert report.errored == 1
    assert "disk I/O error" in report.errors[0]
    assert store.count() == 1


def test_remote_detection_uses_location(config, store):
    gate = PersistenceGate(config, store)
    posting = _posting(title="Software Engineer Intern", location="Remote", description="React and TypeScript")

    gate.save_all([posting])

    assert posting.is_remote is True
    assert posting.job_type == "internship"
    assert posting.tags == ["typescript", "react"]
