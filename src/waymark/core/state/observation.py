"""
Observation Model

An Observation is an immutable snapshot of one captured view of the explored
application: where the browser was, what the page said about itself, and
references to any artifacts saved alongside it.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional

from bs4 import BeautifulSoup
from dataclasses_json import DataClassJsonMixin

from .aria import summarize_interactive_nodes
from .fingerprinting import extract_relative_path, generate_fingerprint

logger = logging.getLogger(__name__)

HEADING_LEVELS = ('h1', 'h2', 'h3', 'h4')


@dataclass(frozen=True)
class ArtifactRefs(DataClassJsonMixin):
    """Opaque paths to files saved for a capture. Never read or written here."""
    html_file: Optional[str] = None
    screenshot_file: Optional[str] = None
    log_file: Optional[str] = None
    aria_snapshot_file: Optional[str] = None


def extract_headings(html: Optional[str]) -> Dict[str, str]:
    """Return the first non-empty h1..h4 text found in the HTML."""
    if not html:
        return {}

    soup = BeautifulSoup(html, 'html.parser')
    headings = {}
    for level in HEADING_LEVELS:
        for heading in soup.find_all(level):
            text = ' '.join(heading.get_text(' ', strip=True).split())
            if text:
                headings[level] = text
                break
    return headings


@dataclass(frozen=True)
class Observation:
    """Point-in-time view of the explored surface."""
    url: Optional[str] = None
    full_url: Optional[str] = None
    title: Optional[str] = None
    h1: Optional[str] = None
    h2: Optional[str] = None
    h3: Optional[str] = None
    h4: Optional[str] = None
    html: Optional[str] = None
    aria_snapshot: Optional[str] = None
    artifacts: Optional[ArtifactRefs] = None
    error: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        if self.full_url is None and self.url:
            object.__setattr__(self, 'full_url', self.url)

        if self.html and not all(getattr(self, level) for level in HEADING_LEVELS):
            # Explicit headings win over extracted ones
            for level, text in extract_headings(self.html).items():
                if not getattr(self, level):
                    object.__setattr__(self, level, text)

    @property
    def relative_path(self) -> str:
        """URL path + fragment, no trailing slash, '/' by default."""
        return extract_relative_path(self.url)

    def fingerprint(self) -> str:
        """Canonical identity key built from relative_path, h1 and h2."""
        return generate_fingerprint(self.relative_path, self.h1, self.h2)

    def headings(self) -> Dict[str, str]:
        return {level: getattr(self, level) for level in HEADING_LEVELS if getattr(self, level)}

    def is_same_location(self, other: Optional['Observation']) -> bool:
        if other is None:
            return False
        return self.relative_path == other.relative_path

    def to_context(self) -> str:
        """
        Render a compact, tagged description of this observation for agent
        prompts: location, title, headings and the interactive aria elements.
        """
        parts = [f"<url>{self.relative_path}</url>"]
        if self.title:
            parts.append(f"<title>{self.title}</title>")
        for level, text in self.headings().items():
            parts.append(f"<{level}>{text}</{level}>")
        if self.error:
            parts.append(f"<error>{self.error}</error>")

        aria_summary = summarize_interactive_nodes(self.aria_snapshot)
        if aria_summary:
            items = '\n'.join(f"- {item}" for item in aria_summary)
            parts.append(f"<aria>\n{items}</aria>")

        return '\n'.join(parts)
