"""Sylectus HTML extraction."""

from src.loadboards.extraction.dates import parse_sylectus_datetime
from src.loadboards.extraction.locations import SylectusLocation, parse_location
from src.loadboards.extraction.sylectus_html import (
    SylectusExtraction,
    SylectusLoad,
    extract_sylectus_loads,
    extract_sylectus_table,
)

__all__ = [
    "SylectusExtraction",
    "SylectusLoad",
    "SylectusLocation",
    "extract_sylectus_loads",
    "extract_sylectus_table",
    "parse_location",
    "parse_sylectus_datetime",
]
