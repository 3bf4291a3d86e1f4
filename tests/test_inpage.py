import pytest

from job_harvester.inpage import InPageExtractor, detect_site


@pytest.mark.parametrize(
    "url, site",
    [
        ("https://www.indeed.com/viewjob?jk=abc123", "indeed"),
        ("https://uk.indeed.com/jobs?q=python", "indeed"),
        ("https://www.linkedin.com/jobs/view/12345/", "linkedin"),
        ("https://www.linkedin.com/in/someone/", None),
        ("https://app.joinhandshake.com/jobs/1", "nittany"),
        ("https://careers.psu.edu/job/7", "nittany"),
        ("https://example.com/careers", None),
        ("", None),
    ],
)
def test_detect_site(url, site):
    assert detect_site(url) == site


def test_extract_detail_page(config, detail_html):
    posting = InPageExtractor(detail_html, "https://www.indeed.com/viewjob?jk=abc123", config).extract()

    assert posting.title == "Junior Python Developer"
    assert posting.company == "Acme Corp"
    assert posting.source == "indeed"
    assert (posting.salary_min, posting.salary_max) == (50000, 70000)
    assert posting.extracted_data["extraction_method"] == "in-page"
    assert posting.extracted_data["apply_url_found"] is True


def test_source_follows_site(config, detail_html):
    posting = InPageExtractor(detail_html, "https://careers.psu.edu/job/7", config).extract()
    assert posting.source == "nittany_careers"


def test_unsupported_site_returns_none(config, detail_html):
    extractor = InPageExtractor(detail_html, "https://example.com/job/1", config)
    assert not extractor.supported
    assert extractor.extract() is None
    assert extractor.extract_all() == []


def test_extract_all_from_results_page(config, results_html):
    postings = InPageExtractor(results_html, "https://www.indeed.com/jobs?q=dev", config).extract_all()
    assert len(postings) == 3
    assert postings[0].salary_min == 50000
