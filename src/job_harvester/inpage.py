"""
In-page extraction for a single already-rendered page (saved HTML or a live page's content)
"""

import logging
from typing import List, Optional
from urllib.parse import urlparse

from job_harvester.extraction import ExtractionEngine
from job_harvester.models import JobPosting
from job_harvester.salary import enrich_posting

logger = logging.getLogger(__name__)

SITE_SOURCES = {
    "indeed": "indeed",
    "linkedin": "linkedin",
    "nittany": "nittany_careers",
}


def detect_site(url: str) -> Optional[str]:
    """Map a page URL to a supported site key, or None."""
    try:
        parsed = urlparse(url or "")
    except ValueError:
        return None
    hostname = (parsed.hostname or "").lower()
    path = parsed.path or ""

    if "indeed.com" in hostname:
        return "indeed"
    if "linkedin.com" in hostname and "/jobs/" in path:
        return "linkedin"
    if "psu.edu" in hostname or "handshake.com" in hostname:
        return "nittany"
    return None


class InPageExtractor:
    """
    Usage:
        posting = InPageExtractor(html, url, config).extract()

    Extracts the job shown on the page (detail page, or the focused job pane
    of a results page) without driving a browser.
    """

    def __init__(self, html: str, url: str, config):
        self.html = html or ""
        self.url = url
        self.config = config
        self.site = detect_site(url)
        self.engine = ExtractionEngine(config)
        if self.site:
            self.engine.source = SITE_SOURCES[self.site]

    @property
    def supported(self) -> bool:
        return self.site is not None

    def extract(self) -> Optional[JobPosting]:
        if not self.supported:
            logger.info("Unsupported site for in-page extraction: %s", self.url)
            return None
        try:
            posting = self.engine.extract_from_job_detail_page(self.html, self.url)
        except Exception as exc:
            logger.error("Job extraction error: %s", exc)
            return None
        if posting is None:
            return None
        posting.extracted_data["extraction_method"] = "in-page"
        posting.extracted_data["site"] = self.site
        return enrich_posting(posting, self.config.normalize_salary_to_annual())

    def extract_all(self) -> List[JobPosting]:
        """Every posting on a results page."""
        if not self.supported:
            return []
        postings = self.engine.extract_from_results_page(self.html, self.url)
        normalize = self.config.normalize_salary_to_annual()
        for posting in postings:
            posting.extracted_data["site"] = self.site
            enrich_posting(posting, normalize)
        return postings
