import pytest

from job_harvester.classify import (
    MAX_TAGS,
    detect_experience_level,
    detect_job_type,
    detect_remote,
    extract_tags,
)


@pytest.mark.parametrize(
    "title, expected",
    [
        ("Software Engineer Intern", "internship"),
        ("Contract Python Developer", "contract"),
        ("Part-Time QA Tester", "part-time"),
        ("Junior Developer", "full-time"),
        (None, "full-time"),
    ],
)
def test_detect_job_type(title, expected):
    assert detect_job_type(title) == expected


@pytest.mark.parametrize(
    "title, description, expected",
    [
        ("Summer Internship", None, "internship"),
        ("Junior Developer", None, "entry-level"),
        ("Developer", "This is an entry-level role", "entry-level"),
        ("Senior Engineer", "5+ years", "senior"),
        ("Developer", "Build things", "entry-level"),
    ],
)
def test_detect_experience_level(title, description, expected):
    assert detect_experience_level(title, description) == expected


def test_detect_remote():
    assert detect_remote("Developer", None, "Remote")
    assert detect_remote("Developer", "Work from home two days a week", "Austin, TX")
    assert not detect_remote("Developer", "On-site", "Austin, TX")


def test_extract_tags_matches_whole_words_in_vocabulary_order():
    tags = extract_tags("Java Developer", "Spring, SQL and some JavaScript")
    assert tags == ["javascript", "java", "sql"]


def test_extract_tags_custom_vocabulary_and_cap():
    vocabulary = [f"skill{i}" for i in range(15)]
    description = " ".join(vocabulary)
    tags = extract_tags("Engineer", description, vocabulary)
    assert len(tags) == MAX_TAGS
    assert tags[0] == "skill0"
