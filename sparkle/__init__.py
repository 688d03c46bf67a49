"""sparkle package exports."""

from .cli import main as cli_main
from .crawler import DirectoryCrawler, crawl
from .organizer import Organizer
from .rules import Rule, load_rules

__all__ = [
    "cli_main",
    "crawl",
    "DirectoryCrawler",
    "load_rules",
    "Organizer",
    "Rule",
]
