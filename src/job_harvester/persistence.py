"""
Persistence Gate - validates, de-duplicates, classifies and stores postings
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional

from job_harvester.classify import (
    detect_experience_level,
    detect_job_type,
    detect_remote,
    extract_tags,
)
from job_harvester.errors import StoreError
from job_harvester.extraction import passes_required_fields
from job_harvester.models import JobPosting
from job_harvester.store import JobStore

logger = logging.getLogger(__name__)


@dataclass
class SaveReport:
    saved: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)
    skip_reasons: Dict[str, int] = field(default_factory=dict)

    @property
    def errored(self) -> int:
        return len(self.errors)

    def __str__(self) -> str:
        return f"saved={self.saved} skipped={self.skipped} errors={self.errored}"


class PersistenceGate:
    """
    Usage:
        gate = PersistenceGate(config, SqliteJobStore("data/jobs.db"))
        report = gate.save_all(postings)

    A posting is stored only if it passes the required-field check and no
    stored posting has the same URL (or, with fuzzy matching on, a similar
    title and company).
    """

    def __init__(self, config, store: JobStore):
        self.config = config
        self.store = store
        self.require_both = config.requires_title_and_company()
        self.fuzzy_match = config.is_fuzzy_match_enabled()
        self.tag_vocabulary = config.get_tag_vocabulary()

    def classify(self, posting: JobPosting) -> JobPosting:
        """Fill job_type, experience_level, is_remote, tags and posted_date (in place)."""
        posting.job_type = posting.job_type or detect_job_type(posting.title)
        posting.experience_level = posting.experience_level or detect_experience_level(
            posting.title, posting.description
        )
        posting.is_remote = posting.is_remote or detect_remote(
            posting.title, posting.description, posting.location
        )
        if not posting.tags:
            posting.tags = extract_tags(posting.title, posting.description, self.tag_vocabulary)
        posting.posted_date = posting.posted_date or date.today().isoformat()
        return posting

    def find_duplicate(self, posting: JobPosting) -> Optional[str]:
        """Return the duplicate kind ("url" or "similar"), or None when the posting is new."""
        if self.store.find_by_url(posting.url) is not None:
            return "url"
        if self.fuzzy_match and posting.title and posting.company:
            if self.store.find_similar(posting.title, posting.company) is not None:
                return "similar"
        return None

    def save_all(self, records: List[JobPosting]) -> SaveReport:
        report = SaveReport()
        reasons: Counter = Counter()

        for posting in records:
            if not passes_required_fields(posting.title, posting.company, self.require_both):
                logger.info("Skipping invalid posting: %s", posting)
                report.skipped += 1
                reasons["invalid"] += 1
                continue

            try:
                duplicate = self.find_duplicate(posting)
                if duplicate is not None:
                    logger.info("Job already exists (%s match): %s", duplicate, posting)
                    report.skipped += 1
                    reasons[f"duplicate_{duplicate}"] += 1
                    continue

                self.classify(posting)
                row_id = self.store.insert(posting.to_record())
            except StoreError as exc:
                logger.error("Failed to save %s: %s", posting.url, exc)
                report.errors.append(f"{posting.url}: {exc}")
                continue

            report.saved += 1
            logger.info("Saved job #%s: %s", row_id, posting)

        report.skip_reasons = dict(reasons)
        logger.info("Persistence complete: %s", report)
        return report
