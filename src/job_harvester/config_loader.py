"""
Configuration loader for Job Harvester
Reads and validates settings.yaml
"""

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from job_harvester.backoff import BackoffPolicy
from job_harvester.errors import ConfigValidationError
from job_harvester.selectors import DEFAULT_DETAIL_SELECTORS, DEFAULT_RESULTS_SELECTORS

logger = logging.getLogger(__name__)


DEFAULT_QUERIES = [
    "entry level software engineer",
    "junior developer",
]

DEFAULT_USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36",
]

DEFAULT_HEADERS = {
    "Accept-Language": "en-US,en;q=0.9",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8",
    "Upgrade-Insecure-Requests": "1",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
    "Cache-Control": "max-age=0",
    "DNT": "1",
}

DEFAULT_CHALLENGE_TITLE_MARKERS = [
    "just a moment",
    "attention required",
    "please wait",
    "checking your browser",
    "security check",
    "verification",
]

DEFAULT_CHALLENGE_CONTENT_MARKERS = [
    "checking your browser",
    "please wait while we check your browser",
    "verify you are human",
    "additional verification required",
    "cf-challenge-running",
    "challenge-form",
]

DEFAULT_CHALLENGE_URL_MARKERS = [
    "__cf_chl",
    "/cdn-cgi/challenge-platform",
    "challenges.cloudflare.com",
]

DEFAULT_BLOCKED_TITLE_MARKERS = [
    "access denied",
    "blocked",
]

DEFAULT_BLOCKED_CONTENT_MARKERS = [
    "you have been blocked",
    "unusual traffic from your",
    "error 1020",
]

DEFAULT_KNOWN_EMPLOYERS = [
    "Lockheed Martin",
    "General Dynamics",
    "Microsoft",
    "Google",
    "Amazon",
]

DEFAULT_TITLE_KEYWORDS = ["Engineer", "Developer"]


def _validate_non_negative(value: Any, field: str) -> None:
    """Validate that a numeric value is non-negative."""
    if value is not None and float(value) < 0:
        raise ConfigValidationError(
            f"Invalid config: '{field}' must be non-negative, got {value}"
        )


def _validate_positive(value: Any, field: str) -> None:
    """Validate that a numeric value is positive (> 0)."""
    if value is not None and float(value) <= 0:
        raise ConfigValidationError(
            f"Invalid config: '{field}' must be positive (> 0), got {value}"
        )


def _validate_min_max_pair(min_val: Any, max_val: Any, min_field: str, max_field: str) -> None:
    """Validate that min_val <= max_val for a delay/range pair."""
    if min_val is not None and max_val is not None:
        if float(min_val) > float(max_val):
            raise ConfigValidationError(
                f"Invalid config: '{min_field}' ({min_val}) must be <= '{max_field}' ({max_val})"
            )


def _validate_string_list(value: Any, field: str) -> None:
    if value is None:
        return
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigValidationError(
            f"Invalid config: '{field}' must be a list of strings, got {value!r}"
        )


def _env_flag(name: str) -> Optional[bool]:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return None
    return raw in ("1", "true", "yes", "on")


class ConfigLoader:
    """Loads and validates configuration from YAML file"""

    def __init__(self, config_path: str = "config/settings.yaml"):
        self.config_path = Path(config_path)
        self.config: Dict[str, Any] = {}
        self._load()

    def _load(self) -> None:
        """Load config from YAML file"""
        if not self.config_path.exists():
            raise FileNotFoundError(f"Config file not found: {self.config_path}")

        try:
            with open(self.config_path, 'r') as f:
                self.config = yaml.safe_load(f) or {}
            logger.info(f"✓ Config loaded from {self.config_path}")
        except yaml.YAMLError as e:
            logger.error(f"Error parsing config file: {e}")
            raise

        if not isinstance(self.config, dict):
            raise ConfigValidationError(
                f"Invalid config: top level of {self.config_path} must be a mapping"
            )

        self._validate_invariants()

    def _validate_invariants(self) -> None:
        """Validate configuration invariants. Raises ConfigValidationError on failure."""
        # Inter-query delay window
        delay_min = self.get('search.delay_min')
        delay_max = self.get('search.delay_max')
        _validate_non_negative(delay_min, 'search.delay_min')
        _validate_non_negative(delay_max, 'search.delay_max')
        _validate_min_max_pair(delay_min, delay_max, 'search.delay_min', 'search.delay_max')
        _validate_non_negative(self.get('search.max_records'), 'search.max_records')
        _validate_non_negative(self.get('search.detail_max_per_query'), 'search.detail_max_per_query')
        _validate_string_list(self.get('search.queries'), 'search.queries')

        # Post-navigation settle delay
        settle_min = self.get('browser.settle_delay_min')
        settle_max = self.get('browser.settle_delay_max')
        _validate_non_negative(settle_min, 'browser.settle_delay_min')
        _validate_non_negative(settle_max, 'browser.settle_delay_max')
        _validate_min_max_pair(settle_min, settle_max, 'browser.settle_delay_min', 'browser.settle_delay_max')

        # Browser timeouts (must be positive)
        _validate_positive(self.get('browser.page_timeout'), 'browser.page_timeout')
        _validate_positive(self.get('browser.navigation_timeout'), 'browser.navigation_timeout')
        _validate_positive(self.get('browser.launch_timeout'), 'browser.launch_timeout')
        _validate_non_negative(self.get('browser.max_retries'), 'browser.max_retries')

        # Challenge polling
        _validate_non_negative(self.get('challenge.max_wait_seconds'), 'challenge.max_wait_seconds')
        _validate_non_negative(self.get('challenge.poll_interval_seconds'), 'challenge.poll_interval_seconds')
        _validate_positive(self.get('challenge.idle_move_every'), 'challenge.idle_move_every')

        # Backoff
        _validate_non_negative(self.get('backoff.base_seconds'), 'backoff.base_seconds')
        _validate_non_negative(self.get('backoff.max_seconds'), 'backoff.max_seconds')
        _validate_non_negative(self.get('backoff.jitter'), 'backoff.jitter')
        _validate_positive(self.get('backoff.factor'), 'backoff.factor')
        _validate_positive(self.get('backoff.max_attempts'), 'backoff.max_attempts')

        # Extraction
        _validate_positive(self.get('extraction.description_max_chars'), 'extraction.description_max_chars')
        _validate_string_list(self.get('extraction.known_employers'), 'extraction.known_employers')
        _validate_string_list(self.get('extraction.title_keywords'), 'extraction.title_keywords')

        for kind in ('results', 'detail'):
            overrides = self.get(f'selectors.{kind}') or {}
            if not isinstance(overrides, dict):
                raise ConfigValidationError(
                    f"Invalid config: 'selectors.{kind}' must be a mapping of field -> selector list"
                )
            for field, selectors in overrides.items():
                _validate_string_list(selectors, f'selectors.{kind}.{field}')

        logger.debug("✓ Config invariants validated")

    def get(self, key: str, default: Any = None) -> Any:
        """Get config value by dot notation (e.g., 'search.queries')"""
        keys = key.split('.')
        value = self.config

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k, default)
            else:
                return default

        return value

    # === Search Config ===

    def get_source(self) -> str:
        """Get the origin tag stored on every posting"""
        return self.get('search.source', 'indeed')

    def get_queries(self) -> List[str]:
        """Get list of search queries"""
        return list(self.get('search.queries', DEFAULT_QUERIES) or [])

    def get_location(self) -> str:
        """Get search location (empty for nationwide)"""
        return self.get('search.location', '') or ''

    def get_max_records(self) -> int:
        """Get max records collected across all queries"""
        return int(self.get('search.max_records', 50))

    def get_home_url(self) -> str:
        """Get the homepage used for the once-per-run connectivity check"""
        return self.get('search.home_url', 'https://www.indeed.com')

    def get_search_url(self) -> str:
        """Get the search results base URL"""
        return self.get('search.search_url', 'https://www.indeed.com/jobs')

    def get_recency_days(self) -> int:
        """Get the 'posted within N days' filter"""
        return int(self.get('search.recency_days', 14))

    def get_sort_order(self) -> str:
        return self.get('search.sort', 'date')

    def get_radius(self) -> int:
        return int(self.get('search.radius', 50))

    def get_query_delay_min(self) -> float:
        """Get minimum delay between queries in seconds"""
        return float(self.get('search.delay_min', 15.0))

    def get_query_delay_max(self) -> float:
        """Get maximum delay between queries in seconds"""
        return float(self.get('search.delay_max', 30.0))

    def is_detail_fetch_enabled(self) -> bool:
        """Check if detail pages should be visited to enrich records"""
        return bool(self.get('search.detail_fetch', False))

    def get_detail_max_per_query(self) -> int:
        """Get max detail page visits per query"""
        return int(self.get('search.detail_max_per_query', 5))

    # === Browser Config ===

    def is_headless(self) -> bool:
        """Check if browser should run in headless mode"""
        override = _env_flag('HARVESTER_HEADLESS')
        if override is not None:
            return override
        return bool(self.get('browser.headless', False))

    def get_page_timeout(self) -> int:
        """Get page timeout in milliseconds"""
        return int(self.get('browser.page_timeout', 30) * 1000)

    def get_navigation_timeout(self) -> int:
        """Get navigation timeout in milliseconds"""
        return int(self.get('browser.navigation_timeout', 45) * 1000)

    def get_launch_timeout(self) -> int:
        """Get browser launch timeout in milliseconds"""
        return int(self.get('browser.launch_timeout', 60) * 1000)

    def get_max_retries(self) -> int:
        """Get max attempts for a single navigation"""
        return max(int(self.get('browser.max_retries', 2)), 1)

    def get_settle_delay_min(self) -> float:
        return float(self.get('browser.settle_delay_min', 4.0))

    def get_settle_delay_max(self) -> float:
        return float(self.get('browser.settle_delay_max', 7.0))

    def is_human_simulation_enabled(self) -> bool:
        """Check if mouse/scroll simulation runs after navigation"""
        return bool(self.get('browser.human_simulation', True))

    def get_browser_channel(self) -> str:
        """Get Playwright browser channel override"""
        return self.get('browser.channel', '') or ''

    def get_browser_executable_path(self) -> str:
        """Get browser executable path override"""
        return self.get('browser.executable_path', '') or ''

    def use_stealth(self) -> bool:
        """Check if playwright-stealth should be applied on top of the init script"""
        return bool(self.get('browser.use_stealth', False))

    def get_viewport(self) -> Dict[str, int]:
        return {
            "width": int(self.get('browser.viewport_width', 1920)),
            "height": int(self.get('browser.viewport_height', 1080)),
        }

    # === Stealth Config ===

    def get_user_agents(self) -> List[str]:
        """Get the user-agent pool"""
        return list(self.get('stealth.user_agents', DEFAULT_USER_AGENTS) or DEFAULT_USER_AGENTS)

    def get_fixed_user_agent(self) -> str:
        """Get a fixed user agent (empty means pick randomly from the pool)"""
        return self.get('stealth.user_agent', '') or ''

    def get_extra_headers(self) -> Dict[str, str]:
        headers = dict(DEFAULT_HEADERS)
        headers.update(self.get('stealth.headers', {}) or {})
        return headers

    def get_locale(self) -> str:
        return self.get('stealth.locale', 'en-US')

    def get_timezone(self) -> str:
        return self.get('stealth.timezone', 'America/New_York')

    # === Warm-up Config ===

    def is_warmup_enabled(self) -> bool:
        return bool(self.get('warmup.enabled', True))

    def get_warmup_search_url(self) -> str:
        return self.get('warmup.search_url', 'https://www.google.com')

    def get_warmup_query(self) -> str:
        return self.get('warmup.query', 'indeed jobs')

    def get_warmup_sites(self) -> List[str]:
        return list(self.get('warmup.sites', ['https://stackoverflow.com', 'https://github.com']) or [])

    # === Challenge Config ===

    def get_challenge_max_wait(self) -> float:
        """Get max seconds to wait for a challenge to clear"""
        return float(self.get('challenge.max_wait_seconds', 30))

    def get_challenge_poll_interval(self) -> float:
        return float(self.get('challenge.poll_interval_seconds', 1.0))

    def get_challenge_idle_move_every(self) -> int:
        """Move the mouse every N polling ticks"""
        return int(self.get('challenge.idle_move_every', 5))

    def get_challenge_markers(self) -> Dict[str, List[str]]:
        return {
            "title": list(self.get('challenge.title_markers', DEFAULT_CHALLENGE_TITLE_MARKERS)),
            "content": list(self.get('challenge.content_markers', DEFAULT_CHALLENGE_CONTENT_MARKERS)),
            "url": list(self.get('challenge.url_markers', DEFAULT_CHALLENGE_URL_MARKERS)),
        }

    def get_blocked_markers(self) -> Dict[str, List[str]]:
        return {
            "title": list(self.get('challenge.blocked_title_markers', DEFAULT_BLOCKED_TITLE_MARKERS)),
            "content": list(self.get('challenge.blocked_content_markers', DEFAULT_BLOCKED_CONTENT_MARKERS)),
        }

    # === Backoff Config ===

    def get_backoff_policy(self) -> BackoffPolicy:
        return BackoffPolicy(
            base_seconds=float(self.get('backoff.base_seconds', 15.0)),
            factor=float(self.get('backoff.factor', 2.0)),
            max_seconds=float(self.get('backoff.max_seconds', 120.0)),
            jitter=float(self.get('backoff.jitter', 0.2)),
            max_attempts=int(self.get('backoff.max_attempts', 3)),
        )

    # === Extraction Config ===

    def requires_title_and_company(self) -> bool:
        """True: both title and company required. False: either one suffices."""
        return bool(self.get('extraction.require_title_and_company', True))

    def get_missing_field_placeholder(self) -> Optional[str]:
        return self.get('extraction.missing_field_placeholder', None)

    def get_description_max_chars(self) -> int:
        return int(self.get('extraction.description_max_chars', 5000))

    def is_content_sniffing_enabled(self) -> bool:
        return bool(self.get('extraction.content_sniffing', True))

    def get_known_employers(self) -> List[str]:
        return list(self.get('extraction.known_employers', DEFAULT_KNOWN_EMPLOYERS) or [])

    def get_title_keywords(self) -> List[str]:
        return list(self.get('extraction.title_keywords', DEFAULT_TITLE_KEYWORDS) or [])

    def get_selectors(self, kind: str = 'results') -> Dict[str, List[str]]:
        """Get the field -> ordered selector table, with per-field config overrides"""
        defaults = DEFAULT_RESULTS_SELECTORS if kind == 'results' else DEFAULT_DETAIL_SELECTORS
        table = {field: list(selectors) for field, selectors in defaults.items()}
        overrides = self.get(f'selectors.{kind}', {}) or {}
        for field, selectors in overrides.items():
            table[field] = list(selectors)
        return table

    # === Salary Config ===

    def normalize_salary_to_annual(self) -> bool:
        return bool(self.get('salary.normalize_to_annual', True))

    # === Persistence Config ===

    def is_fuzzy_match_enabled(self) -> bool:
        """Check if title+company similarity counts as a duplicate"""
        return bool(self.get('persistence.fuzzy_match', True))

    def get_tag_vocabulary(self) -> Optional[List[str]]:
        vocabulary = self.get('persistence.tag_vocabulary', None)
        return list(vocabulary) if vocabulary else None

    def get_sqlite_path(self) -> Path:
        env_path = (os.getenv('HARVESTER_SQLITE_PATH') or '').strip()
        if env_path:
            return Path(env_path)
        return Path(self.get('storage.sqlite_path', 'data/jobs.db'))

    # === Output Config ===

    def get_artifacts_dir(self) -> Path:
        """Directory for diagnostic screenshots and HTML dumps"""
        return Path(self.get('output.artifacts_dir', 'output/artifacts'))

    def get_report_path(self) -> Path:
        template = self.get('output.report_file', 'output/run_report_{timestamp}.json')
        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        return Path(template.replace('{timestamp}', timestamp))

    # === Logging Config ===

    def get_log_level(self) -> str:
        """Get logging level"""
        return (os.getenv('HARVESTER_LOG_LEVEL') or self.get('logging.level', 'INFO')).upper()

    def get_log_file(self) -> Path:
        """Get log file path with timestamp"""
        template = self.get('logging.log_file', 'logs/harvester_{timestamp}.log')
        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        filename = template.replace('{timestamp}', timestamp)
        return Path(filename)

    def __repr__(self) -> str:
        return f"<Config: {len(self.get_queries())} queries, source={self.get_source()}>"


# Convenience function
def load_config(config_path: str = "config/settings.yaml") -> ConfigLoader:
    """Load configuration from file"""
    return ConfigLoader(config_path)
