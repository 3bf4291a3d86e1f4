"""
Data models for Job Harvester
Defines structure for postings, search queries and challenge state
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator


class JobPosting(BaseModel):
    """Represents a single extracted job posting"""

    title: Optional[str] = None
    company: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    url: str

    source: str = "indeed"

    # Compensation
    salary_raw: Optional[str] = None
    salary_min: Optional[float] = None
    salary_max: Optional[float] = None

    # Classification (filled by the persistence gate)
    job_type: Optional[str] = None
    experience_level: Optional[str] = None
    is_remote: bool = False
    tags: List[str] = Field(default_factory=list)
    posted_date: Optional[str] = None

    # Provenance: extraction method, matched selectors, raw fragments
    extracted_data: Dict[str, Any] = Field(default_factory=dict)
    collected_at: datetime = Field(default_factory=datetime.now)

    @model_validator(mode="after")
    def _check_salary_order(self) -> "JobPosting":
        if self.salary_min is not None and self.salary_max is not None:
            if self.salary_min > self.salary_max:
                raise ValueError(
                    f"salary_min ({self.salary_min}) must be <= salary_max ({self.salary_max})"
                )
        return self

    def to_record(self) -> Dict[str, Any]:
        """Flatten into a dict suitable for a JobStore insert."""
        payload = self.model_dump()
        payload["collected_at"] = self.collected_at.isoformat()
        return payload

    def __str__(self) -> str:
        return f"{self.title or '?'} at {self.company or '?'} ({self.location or 'No location'})"


class SearchQuery(BaseModel):
    """Represents a job search query"""

    keyword: str
    location: str = ""
    index: int = 1
    total: int = 1

    def __str__(self) -> str:
        if self.location:
            return f"'{self.keyword}' in {self.location}"
        return f"'{self.keyword}'"


class ChallengeState(str, Enum):
    """Anti-bot state of the current page, derived per navigation."""

    CLEAR = "clear"
    CHALLENGED = "challenged"
    BLOCKED = "blocked"


@dataclass
class ChallengeDetection:
    state: ChallengeState
    reason: Optional[str] = None
    title: str = ""
    url: str = ""

    @property
    def is_clear(self) -> bool:
        return self.state is ChallengeState.CLEAR


@dataclass
class ClearanceResult:
    """Outcome of polling a challenge page until it clears or the budget runs out."""

    cleared: bool
    ticks: int
    state: ChallengeState

    def __bool__(self) -> bool:
        return self.cleared
