"""
Default selector-fallback tables.

Each field maps to an ordered list of CSS selectors; the first one yielding
non-empty text wins. Indeed changes its markup frequently, so these are
overridable per field from config (`selectors.results.<field>` and
`selectors.detail.<field>`).
"""

from typing import Dict, List

DEFAULT_RESULTS_SELECTORS: Dict[str, List[str]] = {
    "cards": [
        "[data-jk]",
        ".jobsearch-SerpJobCard",
        ".job_seen_beacon",
        "[data-testid='jobListing']",
        ".tapItem",
    ],
    "title": [
        "h2.jobTitle span[title]",
        "h2 a[data-jk] span",
        ".jobTitle a span",
        "[data-testid='job-title']",
        "h2 a",
    ],
    "link": [
        "h2 a[data-jk]",
        "h2.jobTitle a",
        ".jobTitle a",
        "[data-testid='job-title'] a",
        "a.jcs-JobTitle",
    ],
    "company": [
        "[data-testid='company-name']",
        "span[data-testid='company-name']",
        ".companyName a",
        ".companyName span",
        ".companyName",
        ".company",
    ],
    "location": [
        "[data-testid='job-location']",
        "[data-testid='text-location']",
        "div[data-testid='text-location']",
        ".companyLocation",
        "[data-testid='location']",
        ".location",
    ],
    "salary": [
        ".salary-snippet-container",
        ".salary-snippet",
        "[data-testid='salary-snippet']",
        "[data-testid='attribute_snippet_testid']",
        ".salaryOnly",
        ".estimated-salary",
    ],
    "description": [
        ".summary",
        ".job-snippet",
        "[data-testid='job-snippet']",
        ".jobsearch-jobDescriptionText",
    ],
}

DEFAULT_DETAIL_SELECTORS: Dict[str, List[str]] = {
    "title": [
        "[data-testid='jobsearch-JobInfoHeader-title'] span",
        ".jobsearch-JobInfoHeader-title span",
        "h1 span[title]",
        "h2[data-testid='jobsearch-JobInfoHeader-title'] span",
        "h1",
        "h2",
    ],
    "company": [
        "[data-testid*='companyName'] a",
        "[data-testid*='companyName']",
        "[data-company-name]",
        ".companyName a",
        ".companyName",
        "a[href*='/cmp/']",
    ],
    "location": [
        "[data-testid*='location'] span",
        "[data-testid*='location']",
        "[id*='location']",
        ".location",
    ],
    "description": [
        "#jobDescriptionText",
        ".jobsearch-JobComponent-description",
        "[data-testid*='description']",
    ],
    "salary": [
        "#salaryInfoAndJobType",
        "[data-testid='jobsearch-JobInfoHeader-salary']",
        ".jobsearch-JobMetadataHeader-item",
        ".salary-snippet",
        "[data-testid*='salary']",
    ],
    "apply": [
        "#applyButtonLinkContainer a[href]",
        "[data-testid*='apply'] a[href]",
        "a[data-testid*='apply'][href]",
        "button[data-href]",
        "a[href*='apply']",
    ],
}

RESULTS_FIELDS = ("title", "company", "location", "salary", "description")
DETAIL_FIELDS = ("title", "company", "location", "salary", "description")
