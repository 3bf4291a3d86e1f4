"""
Keyword rules that tag postings before they are stored.
"""

import re
from typing import Iterable, List, Optional

DEFAULT_TECH_KEYWORDS = [
    "javascript",
    "typescript",
    "react",
    "python",
    "java",
    "sql",
    "aws",
    "docker",
    "kubernetes",
    "node",
]

MAX_TAGS = 10


def _joined(*parts: Optional[str]) -> str:
    return " ".join(p for p in parts if p).lower()


def detect_job_type(title: Optional[str]) -> str:
    text = (title or "").lower()
    if "intern" in text:
        return "internship"
    if "contract" in text:
        return "contract"
    if "part-time" in text or "part time" in text:
        return "part-time"
    return "full-time"


def detect_experience_level(title: Optional[str], description: Optional[str]) -> str:
    text = _joined(title, description)
    if "intern" in text:
        return "internship"
    if "entry level" in text or "entry-level" in text or "junior" in text:
        return "entry-level"
    if "senior" in text:
        return "senior"
    return "entry-level"


def detect_remote(title: Optional[str], description: Optional[str], location: Optional[str]) -> bool:
    text = _joined(title, description, location)
    return "remote" in text or "work from home" in text


def extract_tags(
    title: Optional[str],
    description: Optional[str],
    vocabulary: Optional[Iterable[str]] = None,
) -> List[str]:
    """Tags from a fixed technology vocabulary, in vocabulary order."""
    text = _joined(title, description)
    words = set(re.findall(r"[a-z0-9+#]+", text))
    tags = []
    for keyword in vocabulary or DEFAULT_TECH_KEYWORDS:
        keyword = keyword.lower()
        # Whole-word match so "java" does not fire on "javascript"
        if keyword in words or (" " in keyword and keyword in text):
            tags.append(keyword)
    return tags[:MAX_TAGS]
