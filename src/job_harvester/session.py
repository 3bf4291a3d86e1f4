"""
Session/Stealth Manager - owns the single browser session of a run
"""

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright
from playwright_stealth.stealth import Stealth

from job_harvester.cancel import CancellationToken
from job_harvester.errors import SessionLaunchError
from job_harvester.stealth import (
    IGNORE_DEFAULT_ARGS,
    STEALTH_ARGS,
    STEALTH_INIT_SCRIPT,
    pick_user_agent,
    simulate_human,
)

logger = logging.getLogger(__name__)


@dataclass
class ScrapeSession:
    """
    One browser context owned by one run.

    Holds exactly one live page. Passed explicitly to every component so no
    browser state lives on long-lived objects.
    """

    page: Any
    token: CancellationToken = field(default_factory=CancellationToken)
    user_agent: str = ""
    playwright: Any = None
    browser: Any = None
    context: Any = None
    artifacts: List[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.now)
    closed: bool = False


class SessionManager:
    """Launches, warms up and tears down stealth-configured Playwright sessions"""

    def __init__(self, config, rng: Optional[random.Random] = None):
        self.config = config
        self.rng = rng or random.Random()

    def initialize(self, token: Optional[CancellationToken] = None) -> ScrapeSession:
        """Launch the browser. Raises SessionLaunchError if it cannot start."""
        logger.info("Starting browser...")
        token = token or CancellationToken()
        user_agent = pick_user_agent(
            self.config.get_user_agents(),
            self.config.get_fixed_user_agent(),
            rng=self.rng,
        )
        logger.info("Using User-Agent: %s...", user_agent[:60])

        session = ScrapeSession(page=None, token=token, user_agent=user_agent)
        try:
            session.playwright = sync_playwright().start()

            executable_path = self.config.get_browser_executable_path() or None
            if executable_path and not Path(executable_path).exists():
                logger.warning("Browser executable not found: %s", executable_path)
                executable_path = None

            session.browser = session.playwright.chromium.launch(
                headless=self.config.is_headless(),
                args=STEALTH_ARGS,
                ignore_default_args=IGNORE_DEFAULT_ARGS,
                channel=self.config.get_browser_channel() or None,
                executable_path=executable_path,
                timeout=self.config.get_launch_timeout(),
            )
            session.context = session.browser.new_context(
                user_agent=user_agent,
                viewport=self.config.get_viewport(),
                locale=self.config.get_locale(),
                timezone_id=self.config.get_timezone(),
                extra_http_headers=self.config.get_extra_headers(),
            )
            session.context.add_init_script(STEALTH_INIT_SCRIPT)
            session.page = session.context.new_page()
        except (PlaywrightError, OSError) as exc:
            logger.error("Browser launch failed: %s", exc)
            self.close(session)
            raise SessionLaunchError(f"Browser launch failed: {exc}") from exc

        session.page.set_default_timeout(self.config.get_page_timeout())
        session.page.set_default_navigation_timeout(self.config.get_navigation_timeout())

        if self.config.use_stealth():
            try:
                Stealth().apply_stealth_sync(session.page)
                logger.info("Playwright stealth enabled")
            except Exception as exc:
                logger.warning("Failed to enable stealth mode: %s", exc)

        logger.info("Browser started successfully")
        return session

    def warm_up(self, session: ScrapeSession) -> None:
        """
        Build organic-looking session history before touching the target site.

        Every step is best-effort; failures are logged and skipped.
        """
        page = session.page
        token = session.token
        print("🌐 Browser warm-up sequence...")

        try:
            token.raise_if_cancelled()
            logger.info("Warm-up: visiting %s", self.config.get_warmup_search_url())
            page.goto(self.config.get_warmup_search_url(), wait_until="domcontentloaded")
            self._human_pause(session)

            token.raise_if_cancelled()
            search_box = page.query_selector("textarea[name='q'], input[name='q']")
            if search_box:
                search_box.type(self.config.get_warmup_query(), delay=150)
                token.sleep(1.0)
                page.keyboard.press("Enter")
                page.wait_for_load_state("domcontentloaded")
                self._human_pause(session)
            else:
                logger.info("Warm-up: search box not found, skipping query step")
        except PlaywrightError as exc:
            logger.warning("Warm-up search step failed: %s", exc)

        for site in self.config.get_warmup_sites():
            token.raise_if_cancelled()
            try:
                logger.info("Warm-up: visiting %s", site)
                page.goto(site, wait_until="domcontentloaded")
                self._human_pause(session)
            except PlaywrightError as exc:
                logger.warning("Skipping warm-up site %s: %s", site, exc)

        logger.info("Warm-up completed")

    def _human_pause(self, session: ScrapeSession) -> None:
        if self.config.is_human_simulation_enabled():
            simulate_human(session.page, session.token, rng=self.rng)

    def close(self, session: ScrapeSession) -> None:
        """Clean up browser resources"""
        if session.closed:
            return
        try:
            if session.page is not None:
                session.page.close()
        except Exception:
            logger.debug("Page close failed", exc_info=True)
        try:
            if session.context is not None:
                session.context.close()
        except Exception:
            logger.debug("Browser context close failed", exc_info=True)
        try:
            if session.browser is not None:
                session.browser.close()
        except Exception:
            logger.debug("Browser close failed", exc_info=True)
        try:
            if session.playwright is not None:
                session.playwright.stop()
        except Exception:
            logger.debug("Playwright stop failed", exc_info=True)
        session.closed = True
        logger.info("Browser closed")
