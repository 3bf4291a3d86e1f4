"""
Job Harvester - stealth scraping of job postings with challenge handling,
selector-fallback extraction and de-duplicated storage.
"""

__version__ = "0.1.0"
