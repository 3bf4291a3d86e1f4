"""
Extraction Engine - selector-fallback extraction of job postings from HTML

Results pages and detail pages are parsed with BeautifulSoup. Every field is
located by walking an ordered selector list; the first selector yielding
non-empty text wins and is recorded in the posting's provenance so markup
drift shows up in the logs.
"""

import logging
import re
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple
from urllib.parse import parse_qs, urlencode, urljoin, urlparse, urlunparse

from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError

from job_harvester.models import JobPosting

logger = logging.getLogger(__name__)

ESSENTIAL_URL_PARAMS = ("jk", "vjk")
CLICK_PATHS = ("/rc/clk", "/pagead/clk")

LOCATION_RE = re.compile(r"\b[A-Z][A-Za-z.'\- ]+,\s*[A-Z]{2}\s*\d{5}\b")
REMOTE_RE = re.compile(r"^(?:remote|hybrid remote)\b", re.IGNORECASE)
SALARY_HINT_RE = re.compile(r"[$£€]\s?\d|\d\s?[kK]\b")
APPLY_RE = re.compile(r"\bapply\b|apply[-_ ]?(?:now|button|link|url)|applybutton|indeed-?apply", re.IGNORECASE)
ONCLICK_URL_RE = re.compile(r"""['"]((?:https?:)?//[^'"]+|/[^'"]+)['"]""")
TITLE_NOISE_RE = re.compile(r"\s*(?:-\s*job post|\|\s*indeed\.com)\s*$", re.IGNORECASE)

ACTION_URL_ATTRIBUTES = ("href", "data-href", "data-apply-url", "data-url", "formaction")
SKIP_LEAF_TAGS = {"script", "style", "noscript", "template"}


@dataclass
class FieldMatch:
    """A located field value and how it was found."""

    value: str
    selector: Optional[str] = None
    index: Optional[int] = None
    heuristic: Optional[str] = None

    def provenance(self) -> Dict[str, Any]:
        if self.heuristic:
            return {"heuristic": self.heuristic}
        return {"selector": self.selector, "index": self.index}


def clean_text(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    cleaned = re.sub(r"\s+", " ", text).strip()
    return cleaned or None


def clean_title(title: Optional[str]) -> Optional[str]:
    if not title:
        return None
    return clean_text(TITLE_NOISE_RE.sub("", title))


def clean_location(location: Optional[str]) -> Optional[str]:
    if not location:
        return None
    return clean_text(re.sub(r"^\s*•\s*", "", location))


def truncate_description(text: Optional[str], max_chars: int) -> Optional[str]:
    if not text:
        return None
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + "..."


def canonical_listing_url(url: str) -> str:
    """
    Keep only the job-key parameters so tracking noise does not defeat de-duplication.

    Click-through redirect paths are rewritten to the stable /viewjob form.
    """
    try:
        parsed = urlparse(url)
    except ValueError:
        return url
    if not parsed.scheme or not parsed.netloc:
        return url
    query = parse_qs(parsed.query)
    kept = [(key, query[key][0]) for key in ESSENTIAL_URL_PARAMS if query.get(key)]
    path = parsed.path
    if kept and path in CLICK_PATHS:
        path = "/viewjob"
    return urlunparse((parsed.scheme, parsed.netloc, path, "", urlencode(kept), ""))


def _strip_fragment(url: str) -> str:
    return url.split("#", 1)[0].rstrip("/")


def passes_required_fields(title: Optional[str], company: Optional[str], require_both: bool = True) -> bool:
    """
    Sanity check for the fields a posting must carry.

    require_both=True is the server-side threshold (title AND company);
    False accepts title OR company.
    """
    title_ok = bool(title) and len(title) > 3 and "not found" not in title.lower()
    company_ok = bool(company) and len(company) > 1 and "not found" not in company.lower()
    if require_both:
        return title_ok and company_ok
    return title_ok or company_ok


class ExtractionEngine:
    """Turns rendered HTML into validated JobPosting records"""

    def __init__(self, config):
        self.config = config
        self.source = config.get_source()
        self.results_selectors = config.get_selectors("results")
        self.detail_selectors = config.get_selectors("detail")
        self.require_both = config.requires_title_and_company()
        self.placeholder = config.get_missing_field_placeholder()
        self.description_max_chars = config.get_description_max_chars()
        self.sniffing_enabled = config.is_content_sniffing_enabled()
        self.known_employers = config.get_known_employers()
        self.title_keywords = config.get_title_keywords()
        self.last_card_count = 0

    # === Selector fallback chains ===

    def _safe_select(self, scope: Tag, selector: str) -> List[Tag]:
        try:
            return scope.select(selector)
        except SelectorSyntaxError as exc:
            logger.warning("Skipping invalid selector %r: %s", selector, exc)
            return []

    def select_first(
        self,
        scope: Tag,
        selectors: List[str],
        *,
        attribute: Optional[str] = None,
        accept: Optional[Callable[[str], bool]] = None,
    ) -> Optional[FieldMatch]:
        """Walk the selector list in order and return the first usable value."""
        for index, selector in enumerate(selectors):
            for element in self._safe_select(scope, selector):
                if attribute:
                    value = (element.get(attribute) or "").strip()
                else:
                    value = clean_text(element.get_text(" ", strip=True)) or ""
                if not value:
                    continue
                if accept and not accept(value):
                    continue
                return FieldMatch(value=value, selector=selector, index=index)
        return None

    # === Content sniffing ===

    def _leaf_texts(self, scope: Tag) -> Iterator[str]:
        for element in scope.find_all(True):
            if element.name in SKIP_LEAF_TAGS or element.find(True) is not None:
                continue
            text = clean_text(element.get_text())
            if text:
                yield text

    def sniff_location(self, scope: Tag) -> Optional[FieldMatch]:
        for text in self._leaf_texts(scope):
            match = LOCATION_RE.search(text)
            if match:
                return FieldMatch(value=match.group(0), heuristic="location-pattern")
            if REMOTE_RE.match(text) and len(text) < 40:
                return FieldMatch(value=text, heuristic="location-remote")
        return None

    def sniff_company(self, scope: Tag) -> Optional[FieldMatch]:
        for employer in self.known_employers:
            for text in self._leaf_texts(scope):
                if employer in text:
                    value = text if len(text) < 100 else employer
                    return FieldMatch(value=value, heuristic="known-employer")
        return None

    def sniff_title(self, scope: Tag) -> Optional[FieldMatch]:
        for text in self._leaf_texts(scope):
            if len(text) >= 100:
                continue
            for keyword in self.title_keywords:
                if keyword in text:
                    return FieldMatch(value=text, heuristic="title-keyword")
        return None

    def _locate(
        self,
        scope: Tag,
        selectors: List[str],
        sniffer: Optional[Callable[[Tag], Optional[FieldMatch]]] = None,
        accept: Optional[Callable[[str], bool]] = None,
    ) -> Optional[FieldMatch]:
        match = self.select_first(scope, selectors, accept=accept)
        if match is None and sniffer is not None and self.sniffing_enabled:
            match = sniffer(scope)
        return match

    def _apply_policy(self, title: Optional[str], company: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
        """Fill a missing required field with the configured placeholder (if any)."""
        if self.require_both or not self.placeholder:
            return title, company
        return title or self.placeholder, company or self.placeholder

    # === Results pages ===

    def find_cards(self, soup: BeautifulSoup) -> Tuple[Optional[str], List[Tag]]:
        """Return (selector used, outermost card elements)."""
        for selector in self.results_selectors["cards"]:
            found = self._safe_select(soup, selector)
            if not found:
                continue
            found_ids = {id(el) for el in found}
            # A card and a link inside it can both carry the attribute
            cards = [
                el for el in found
                if not any(id(parent) in found_ids for parent in el.parents)
            ]
            return selector, cards
        return None, []

    def extract_from_results_page(self, html: str, page_url: str) -> List[JobPosting]:
        """Extract every valid posting from a search results page."""
        soup = BeautifulSoup(html or "", "html.parser")
        card_selector, cards = self.find_cards(soup)
        self.last_card_count = len(cards)
        if not cards:
            logger.warning("No job cards found with any selector (url=%s)", page_url)
            return []
        logger.info("Found %s job cards using selector: %s", len(cards), card_selector)

        postings: List[JobPosting] = []
        usage: Counter = Counter()
        for index, card in enumerate(cards):
            try:
                posting = self._extract_card(card, index, page_url, card_selector, usage)
            except Exception as exc:
                logger.warning("Failed to extract card %s: %s", index, exc)
                continue
            if posting is not None:
                postings.append(posting)

        for (field, how), count in sorted(usage.items()):
            logger.info("Selector usage: %s <- %s (%s cards)", field, how, count)
        logger.info("Extracted %s valid postings from %s cards", len(postings), len(cards))
        return postings

    def _extract_card(
        self,
        card: Tag,
        index: int,
        page_url: str,
        card_selector: Optional[str],
        usage: Counter,
    ) -> Optional[JobPosting]:
        sel = self.results_selectors
        matches: Dict[str, FieldMatch] = {}

        title_match = self._locate(card, sel["title"], self.sniff_title)
        company_match = self._locate(card, sel["company"], self.sniff_company)
        location_match = self._locate(card, sel["location"], self.sniff_location)
        salary_match = self._locate(card, sel["salary"], accept=lambda t: bool(SALARY_HINT_RE.search(t)))
        description_match = self._locate(card, sel["description"])

        for field, match in (
            ("title", title_match),
            ("company", company_match),
            ("location", location_match),
            ("salary", salary_match),
            ("description", description_match),
        ):
            if match is not None:
                matches[field] = match
                how = match.heuristic or f"#{match.index} {match.selector}"
                usage[(field, how)] += 1
                logger.debug("Card %s: %s matched %s", index, field, how)

        title = clean_title(title_match.value) if title_match else None
        company = clean_text(company_match.value) if company_match else None

        if not passes_required_fields(title, company, self.require_both):
            logger.info(
                "Skipping card %s: insufficient data (title=%r, company=%r)", index, title, company
            )
            return None
        title, company = self._apply_policy(title, company)

        href, url, synthetic = self._card_url(card, index, page_url)
        salary = salary_match.value if salary_match else None

        return JobPosting(
            title=title,
            company=company,
            location=clean_location(location_match.value) if location_match else None,
            description=truncate_description(
                description_match.value if description_match else None,
                self.description_max_chars,
            ),
            url=url,
            source=self.source,
            salary_raw=salary,
            extracted_data={
                "page_type": "search-results",
                "extraction_method": "selector-fallback",
                "extracted_at": datetime.now().isoformat(),
                "card_selector": card_selector,
                "card_index": index,
                "selector_matches": {field: m.provenance() for field, m in matches.items()},
                "raw_salary": salary,
                "original_href": href,
                "synthetic_url": synthetic,
                "source_page_url": page_url,
                "card_html": str(card)[:1000],
            },
        )

    def _card_url(self, card: Tag, index: int, page_url: str) -> Tuple[Optional[str], str, bool]:
        """Return (raw href, canonical url, is_synthetic)."""
        link_match = self.select_first(card, self.results_selectors["link"], attribute="href")
        href = link_match.value if link_match else None
        if href and not href.lower().startswith("javascript:"):
            return href, canonical_listing_url(urljoin(page_url, href)), False

        job_key = card.get("data-jk")
        if not job_key:
            keyed = card.select_one("[data-jk]")
            job_key = keyed.get("data-jk") if keyed else None
        if job_key:
            return href, canonical_listing_url(urljoin(page_url, f"/viewjob?jk={job_key}")), False

        # Positional key: cannot be de-duplicated reliably across runs
        return href, f"{_strip_fragment(page_url)}#job-{index}", True

    # === Detail pages ===

    def extract_from_job_detail_page(self, html: str, page_url: str) -> Optional[JobPosting]:
        """Extract one posting (and its apply link, if any) from a job detail page."""
        soup = BeautifulSoup(html or "", "html.parser")
        scope = soup.body or soup
        sel = self.detail_selectors
        matches: Dict[str, FieldMatch] = {}

        title_match = self._locate(scope, sel["title"], self.sniff_title)
        company_match = self._locate(scope, sel["company"], self.sniff_company)
        location_match = self._locate(scope, sel["location"], self.sniff_location)
        salary_match = self._locate(scope, sel["salary"], accept=lambda t: bool(SALARY_HINT_RE.search(t)))
        description = None
        for index, selector in enumerate(sel["description"]):
            elements = self._safe_select(scope, selector)
            if elements:
                text = elements[0].get_text("\n", strip=True)
                if text:
                    description = text
                    matches["description"] = FieldMatch(value=text, selector=selector, index=index)
                    break

        for field, match in (
            ("title", title_match),
            ("company", company_match),
            ("location", location_match),
            ("salary", salary_match),
        ):
            if match is not None:
                matches[field] = match
                logger.info("Detail page: %s matched %s", field, match.heuristic or f"#{match.index} {match.selector}")

        title = clean_title(title_match.value) if title_match else None
        company = clean_text(company_match.value) if company_match else None
        if not passes_required_fields(title, company, self.require_both):
            logger.warning(
                "Detail page missing required data (title=%r, company=%r, url=%s)", title, company, page_url
            )
            return None
        title, company = self._apply_policy(title, company)

        listing_url = canonical_listing_url(page_url)
        apply = self.find_apply_url(scope, page_url)
        extracted_data: Dict[str, Any] = {
            "page_type": "job-detail",
            "extraction_method": "selector-fallback",
            "extracted_at": datetime.now().isoformat(),
            "selector_matches": {field: m.provenance() for field, m in matches.items()},
            "apply_url_found": apply is not None,
            "listing_url": listing_url,
        }
        if apply is not None:
            extracted_data["apply_match"] = apply.provenance()
            logger.info("Apply link found: %s", apply.value)
        else:
            logger.info("No apply link found; using listing URL")

        salary = salary_match.value if salary_match else None
        extracted_data["raw_salary"] = salary
        return JobPosting(
            title=title,
            company=company,
            location=clean_location(location_match.value) if location_match else None,
            description=truncate_description(description, self.description_max_chars),
            url=apply.value if apply is not None else listing_url,
            source=self.source,
            salary_raw=salary,
            extracted_data=extracted_data,
        )

    def find_apply_url(self, scope: Tag, page_url: str) -> Optional[FieldMatch]:
        """
        Locate an explicit apply action whose target differs from the page itself.

        Configured selectors are tried first, then every anchor/button is
        checked for apply-ish text, aria-label, id, class or data attributes.
        """
        page_key = _strip_fragment(page_url)

        def usable(element: Tag) -> Optional[str]:
            raw = _action_url(element)
            if not raw or raw.startswith("#") or raw.lower().startswith("javascript:"):
                return None
            absolute = urljoin(page_url, raw)
            if _strip_fragment(absolute) == page_key:
                return None
            return absolute

        for index, selector in enumerate(self.detail_selectors.get("apply", [])):
            for element in self._safe_select(scope, selector):
                url = usable(element)
                if url:
                    return FieldMatch(value=url, selector=selector, index=index)

        for element in scope.find_all(["a", "button"]):
            if not APPLY_RE.search(_apply_signals(element)):
                continue
            url = usable(element)
            if url:
                return FieldMatch(value=url, heuristic="apply-attributes")
        return None


def _action_url(element: Tag) -> Optional[str]:
    for attribute in ACTION_URL_ATTRIBUTES:
        value = element.get(attribute)
        if value:
            return value.strip()
    onclick = element.get("onclick") or ""
    match = ONCLICK_URL_RE.search(onclick)
    if match:
        return match.group(1)
    return None


def _apply_signals(element: Tag) -> str:
    parts = [element.get_text(" ", strip=True)]
    for key, value in element.attrs.items():
        if key in ("id", "title", "aria-label", "name") or key.startswith("data-"):
            parts.append(f"{key} {value}")
        elif key == "class":
            parts.append(" ".join(value) if isinstance(value, list) else str(value))
    return " ".join(parts)
