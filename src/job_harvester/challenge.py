"""
Challenge Handler - detects anti-bot interstitials and waits them out
"""

import logging
import math
import random
from datetime import datetime
from typing import Any, Dict, Optional

from job_harvester.cancel import CancellationToken
from job_harvester.errors import RunCancelled
from job_harvester.models import ChallengeDetection, ChallengeState, ClearanceResult

logger = logging.getLogger(__name__)


class ChallengeHandler:
    """
    Usage:
        handler = ChallengeHandler(config)
        if handler.detect_challenge(page) is ChallengeState.CHALLENGED:
            result = handler.await_clearance(page, 30, token)
    """

    def __init__(self, config, rng: Optional[random.Random] = None):
        self.config = config
        self.rng = rng or random.Random()
        self.challenge_markers = config.get_challenge_markers()
        self.blocked_markers = config.get_blocked_markers()

    def inspect(self, page: Any) -> ChallengeDetection:
        """Classify the current page from its title, URL and rendered HTML."""
        try:
            title = (page.title() or "").strip()
            url = page.url or ""
            content = (page.content() or "").lower()
        except Exception as exc:
            # Usually a navigation still in flight (challenge redirect)
            logger.debug("Challenge inspection failed: %s", exc)
            return ChallengeDetection(ChallengeState.CHALLENGED, reason=f"error:{exc}")

        title_lower = title.lower()
        url_lower = url.lower()

        for marker in self.blocked_markers["title"]:
            if marker.lower() in title_lower:
                return ChallengeDetection(ChallengeState.BLOCKED, f"title:{marker}", title, url)
        for marker in self.blocked_markers["content"]:
            if marker.lower() in content:
                return ChallengeDetection(ChallengeState.BLOCKED, f"body:{marker}", title, url)

        for marker in self.challenge_markers["title"]:
            if marker.lower() in title_lower:
                return ChallengeDetection(ChallengeState.CHALLENGED, f"title:{marker}", title, url)
        for marker in self.challenge_markers["url"]:
            if marker.lower() in url_lower:
                return ChallengeDetection(ChallengeState.CHALLENGED, f"url:{marker}", title, url)
        for marker in self.challenge_markers["content"]:
            if marker.lower() in content:
                return ChallengeDetection(ChallengeState.CHALLENGED, f"body:{marker}", title, url)

        return ChallengeDetection(ChallengeState.CLEAR, None, title, url)

    def detect_challenge(self, page: Any) -> ChallengeState:
        return self.inspect(page).state

    def await_clearance(
        self,
        page: Any,
        max_wait_seconds: float,
        token: CancellationToken,
        poll_interval: Optional[float] = None,
    ) -> ClearanceResult:
        """
        Poll until the challenge clears, the page turns blocked, or the budget runs out.

        Raises RunCancelled if the token is set between ticks.
        """
        interval = self.config.get_challenge_poll_interval() if poll_interval is None else poll_interval
        if interval > 0:
            max_ticks = max(1, math.ceil(max_wait_seconds / interval))
        else:
            max_ticks = max(1, int(max_wait_seconds))
        idle_every = self.config.get_challenge_idle_move_every()

        logger.info("Waiting for challenge to clear (up to %s ticks of %.1fs)", max_ticks, interval)
        for tick in range(1, max_ticks + 1):
            token.raise_if_cancelled()
            if not token.sleep(interval):
                raise RunCancelled(token.reason or "cancelled")

            detection = self.inspect(page)
            if detection.state is ChallengeState.CLEAR:
                logger.info("Challenge cleared after %s ticks", tick)
                return ClearanceResult(True, tick, ChallengeState.CLEAR)
            if detection.state is ChallengeState.BLOCKED:
                logger.warning("Challenge escalated to block (reason=%s)", detection.reason)
                return ClearanceResult(False, tick, ChallengeState.BLOCKED)

            if tick % idle_every == 0:
                logger.info("Still waiting... %s/%s", tick, max_ticks)
                try:
                    page.mouse.move(
                        self.rng.uniform(500, 600),
                        self.rng.uniform(300, 400),
                    )
                except Exception:
                    logger.debug("Idle mouse move failed", exc_info=True)

        logger.warning("Challenge did not clear within %s ticks", max_ticks)
        return ClearanceResult(False, max_ticks, ChallengeState.CHALLENGED)

    def capture_artifacts(self, session, label: str) -> Optional[Dict[str, str]]:
        """Save a screenshot and the page HTML for later diagnosis."""
        try:
            output_dir = self.config.get_artifacts_dir()
            output_dir.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
            stem = f"{label}_{timestamp}" if label else timestamp
            png_path = output_dir / f"{stem}.png"
            html_path = output_dir / f"{stem}.html"
            session.page.screenshot(path=str(png_path))
            html_path.write_text(session.page.content(), encoding="utf-8")
            session.artifacts.extend([str(png_path), str(html_path)])
            logger.info("Saved diagnostic artifacts: %s", png_path)
            return {"png": str(png_path), "html": str(html_path)}
        except Exception:
            logger.debug("Failed to save diagnostic artifacts", exc_info=True)
            return None
