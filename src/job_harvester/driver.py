"""
Query Driver - runs search queries through one session and collects postings
"""

import logging
import random
from typing import List, Optional, Sequence, Union
from urllib.parse import urlencode

from job_harvester.challenge import ChallengeHandler
from job_harvester.errors import ChallengeNotCleared, ConnectivityError, QueryFailed, RunCancelled
from job_harvester.extraction import ExtractionEngine
from job_harvester.models import ChallengeState, JobPosting, SearchQuery
from job_harvester.run_metrics import RunReport
from job_harvester.salary import enrich_posting
from job_harvester.session import ScrapeSession
from job_harvester.stealth import simulate_human

logger = logging.getLogger(__name__)


class QueryDriver:
    """
    Usage:
        driver = QueryDriver(config, ChallengeHandler(config), ExtractionEngine(config), report)
        postings = driver.run(session, ["junior developer"], max_records=50)

    Postings gathered so far are kept on `driver.collected` so a cancelled
    run can still persist them.
    """

    def __init__(
        self,
        config,
        challenge_handler: ChallengeHandler,
        engine: ExtractionEngine,
        report: RunReport,
        rng: Optional[random.Random] = None,
    ):
        self.config = config
        self.challenge_handler = challenge_handler
        self.engine = engine
        self.report = report
        self.rng = rng or random.Random()
        self.backoff = config.get_backoff_policy()
        self.collected: List[JobPosting] = []

    def build_search_url(self, query: SearchQuery) -> str:
        """Build search URL for the job board"""
        params = {"q": query.keyword}
        if query.location:
            params["l"] = query.location
        recency = self.config.get_recency_days()
        if recency > 0:
            params["fromage"] = recency
        sort = self.config.get_sort_order()
        if sort:
            params["sort"] = sort
        if query.location:
            params["radius"] = self.config.get_radius()
        return f"{self.config.get_search_url()}?{urlencode(params)}"

    # === Navigation helpers ===

    def _sleep(self, session: ScrapeSession, seconds: float) -> None:
        if not session.token.sleep(seconds):
            raise RunCancelled(session.token.reason or "cancelled")

    def _settle(self, session: ScrapeSession) -> None:
        self._sleep(
            session,
            self.rng.uniform(self.config.get_settle_delay_min(), self.config.get_settle_delay_max()),
        )

    def _safe_goto(self, session: ScrapeSession, url: str) -> bool:
        """Navigate with retry for flaky pages."""
        max_retries = self.config.get_max_retries()
        for attempt in range(1, max_retries + 1):
            session.token.raise_if_cancelled()
            try:
                session.page.goto(url, wait_until="domcontentloaded")
                return True
            except Exception as exc:
                logger.warning("Navigation failed (attempt %s/%s): %s", attempt, max_retries, exc)
                self.report.inc("navigation_errors")
                if attempt < max_retries:
                    self._settle(session)
        return False

    def _ensure_clear(self, session: ScrapeSession, url: str, label: str) -> None:
        """Raise ChallengeNotCleared unless the current page is (or becomes) clear."""
        detection = self.challenge_handler.inspect(session.page)
        if detection.is_clear:
            return

        state = detection.state
        logger.warning(
            "Anti-bot page detected (state=%s, reason=%s, title=%s, url=%s)",
            state.value,
            detection.reason,
            detection.title,
            detection.url,
        )
        self.report.inc("challenges_seen")

        if state is ChallengeState.CHALLENGED:
            print("   🛡️  Challenge detected - waiting for it to clear...")
            result = self.challenge_handler.await_clearance(
                session.page, self.config.get_challenge_max_wait(), session.token
            )
            if result.cleared:
                self.report.inc("challenges_cleared")
                self.report.record_event("challenge_cleared", url=url, ticks=result.ticks)
                print(f"   ✓ Challenge cleared after {result.ticks} ticks")
                return
            state = result.state

        artifacts = self.challenge_handler.capture_artifacts(session, label)
        self.report.add_artifacts(artifacts)
        raise ChallengeNotCleared(
            f"Challenge not cleared ({state.value}) at {url}",
            reason=state.value,
            url=url,
        )

    # === Connectivity check ===

    def check_connectivity(self, session: ScrapeSession) -> None:
        """
        Load the homepage once before any query.

        Retries with backoff up to the policy's attempt limit; raises
        ConnectivityError if the site never becomes reachable and clear.
        """
        url = self.config.get_home_url()
        attempts = self.backoff.max_attempts
        print(f"🏠 Checking connectivity: {url}")

        for attempt in range(1, attempts + 1):
            session.token.raise_if_cancelled()
            try:
                if not self._safe_goto(session, url):
                    raise QueryFailed("Homepage did not load", reason="navigation", url=url)
                self._settle(session)
                self._ensure_clear(session, url, label="connectivity")
                logger.info("Connectivity check passed (attempt %s/%s)", attempt, attempts)
                print("   ✓ Site reachable")
                return
            except QueryFailed as exc:
                logger.warning("Connectivity attempt %s/%s failed: %s", attempt, attempts, exc)
                self.report.record_event("connectivity_failed", attempt=attempt, reason=exc.reason)
                if attempt < attempts and not self.backoff.wait(attempt, session.token):
                    raise RunCancelled(session.token.reason or "cancelled")

        artifacts = self.challenge_handler.capture_artifacts(session, "connectivity_final")
        self.report.add_artifacts(artifacts)
        raise ConnectivityError(f"{url} not reachable after {attempts} attempts")

    # === Per-query scraping ===

    def scrape_query(self, session: ScrapeSession, query: SearchQuery) -> List[JobPosting]:
        """Collect jobs for a single search query. Raises QueryFailed."""
        url = self.build_search_url(query)
        logger.info("Searching: %s (%s)", query, url)
        print(f"\n🔍 Query {query.index}/{query.total}: {query}")

        if not self._safe_goto(session, url):
            raise QueryFailed("Failed to load search page", reason="navigation", url=url)
        self._settle(session)
        self._ensure_clear(session, url, label="search")

        card_selector = ", ".join(self.engine.results_selectors["cards"])
        try:
            session.page.wait_for_selector(card_selector, timeout=self.config.get_page_timeout())
        except Exception as exc:
            logger.info("Job cards did not appear before timeout: %s", exc)

        if self.config.is_human_simulation_enabled():
            simulate_human(session.page, session.token, rng=self.rng)

        page_url = session.page.url or url
        postings = self.engine.extract_from_results_page(session.page.content(), page_url)
        self.report.inc("cards_found", self.engine.last_card_count)

        if self.engine.last_card_count == 0:
            artifacts = self.challenge_handler.capture_artifacts(session, "no_results")
            self.report.add_artifacts(artifacts)
            print("   ⚠️  No job cards found - saved debug screenshot + HTML")
            raise QueryFailed("No job cards found", reason="no_cards", url=url)

        normalize = self.config.normalize_salary_to_annual()
        for posting in postings:
            enrich_posting(posting, normalize)

        print(f"   Found {self.engine.last_card_count} listings, {len(postings)} valid")
        return postings

    def enrich_from_detail(self, session: ScrapeSession, posting: JobPosting) -> JobPosting:
        """
        Visit the posting's detail page and merge what it adds.

        The listing URL stays the posting's identity; an apply link found on
        the detail page is recorded in extracted_data["apply_url"].
        """
        if posting.extracted_data.get("synthetic_url"):
            return posting
        if not self._safe_goto(session, posting.url):
            logger.info("Detail page did not load: %s", posting.url)
            return posting
        self._settle(session)
        try:
            self._ensure_clear(session, posting.url, label="detail")
        except ChallengeNotCleared as exc:
            logger.warning("Skipping detail enrichment: %s", exc)
            self.report.inc("detail_blocked")
            return posting

        detail = self.engine.extract_from_job_detail_page(
            session.page.content(), session.page.url or posting.url
        )
        if detail is None:
            return posting

        if detail.description and len(detail.description) > len(posting.description or ""):
            posting.description = detail.description
        posting.location = posting.location or detail.location
        if detail.salary_raw and not posting.salary_raw:
            posting.salary_raw = detail.salary_raw
            posting.extracted_data["raw_salary"] = detail.salary_raw
            enrich_posting(posting, self.config.normalize_salary_to_annual())
        if detail.extracted_data.get("apply_url_found"):
            posting.extracted_data["apply_url"] = detail.url
        posting.extracted_data["detail"] = {
            "apply_url_found": detail.extracted_data.get("apply_url_found", False),
            "selector_matches": detail.extracted_data.get("selector_matches", {}),
        }
        self.report.inc("details_fetched")
        return posting

    def _enrich_details(self, session: ScrapeSession, postings: List[JobPosting]) -> None:
        if not self.config.is_detail_fetch_enabled():
            return
        limit = self.config.get_detail_max_per_query()
        for posting in postings[:limit] if limit > 0 else postings:
            session.token.raise_if_cancelled()
            try:
                self.enrich_from_detail(session, posting)
            except RunCancelled:
                raise
            except Exception as exc:
                # Keep the listing-page record as collected
                logger.warning("Detail enrichment failed for %s: %s", posting.url, exc)
                self.report.inc("detail_failed")
                self.report.record_event("detail_failed", url=posting.url, error=str(exc))

    # === Whole run ===

    def _as_queries(self, queries: Sequence[Union[str, SearchQuery]]) -> List[SearchQuery]:
        location = self.config.get_location()
        total = len(queries)
        result = []
        for index, query in enumerate(queries, 1):
            if isinstance(query, SearchQuery):
                result.append(query)
            else:
                result.append(SearchQuery(keyword=query, location=location, index=index, total=total))
        return result

    def _record_failure(self, query: SearchQuery, exc: Exception) -> None:
        reason = getattr(exc, "reason", "error")
        url = getattr(exc, "url", "") or None
        logger.error("Query %s failed (%s): %s", query, reason, exc)
        print(f"   ✗ Query failed: {exc}")
        self.report.inc("queries_failed")
        self.report.record_event("query_failed", query=query.keyword, reason=reason, url=url, error=str(exc))

    def run(
        self,
        session: ScrapeSession,
        queries: Sequence[Union[str, SearchQuery]],
        max_records: Optional[int] = None,
    ) -> List[JobPosting]:
        """
        Run every query in order and return up to max_records postings.

        max_records <= 0 means no cap. A failed query is recorded and the
        next one starts after an escalating backoff. Fatal errors
        (ConnectivityError, RunCancelled) propagate.
        """
        limit = self.config.get_max_records() if max_records is None else max_records
        token = session.token
        self.collected = []
        seen_urls = set()

        self.check_connectivity(session)

        search_queries = self._as_queries(queries)
        consecutive_failures = 0
        for position, query in enumerate(search_queries, 1):
            token.raise_if_cancelled()

            if consecutive_failures:
                if not self.backoff.wait(consecutive_failures, token):
                    raise RunCancelled(token.reason or "cancelled")

            try:
                postings = self.scrape_query(session, query)
            except QueryFailed as exc:
                consecutive_failures += 1
                self._record_failure(query, exc)
                continue
            except RunCancelled:
                raise
            except Exception as exc:
                consecutive_failures += 1
                self._record_failure(query, exc)
                continue

            consecutive_failures = 0
            fresh = [p for p in postings if p.url not in seen_urls]
            if limit > 0:
                fresh = fresh[: max(limit - len(self.collected), 0)]
            seen_urls.update(p.url for p in fresh)

            self.collected.extend(fresh)
            self._enrich_details(session, fresh)
            self.report.inc("queries_ok")
            self.report.record_event("query_done", query=query.keyword, found=len(postings), kept=len(fresh))
            print(f"   ✓ Collected {len(fresh)} jobs (total {len(self.collected)})")

            if limit > 0 and len(self.collected) >= limit:
                logger.info("Reached max_records=%s; stopping", limit)
                print(f"   🛑 Reached max records ({limit})")
                break

            if position < len(search_queries):
                delay = self.rng.uniform(self.config.get_query_delay_min(), self.config.get_query_delay_max())
                logger.info("Waiting %.1fs before next query", delay)
                if delay > 0:
                    print(f"   ⏳ Waiting {delay:.0f}s before next query...")
                self._sleep(session, delay)

        logger.info("Collection complete: %s postings", len(self.collected))
        return list(self.collected)
