"""
State identity, deduplication and diffing.
"""

from .diff import Diff
from .fingerprinting import extract_relative_path, generate_fingerprint, normalize_path
from .html_diff import HtmlDiffResult, html_diff
from .models import StateNode, Transition, Trigger
from .observation import ArtifactRefs, Observation
from .path import Path, PathStep
from .registry import StateRegistry

__all__ = [
    'Observation', 'ArtifactRefs',
    'StateNode', 'Transition', 'Trigger',
    'StateRegistry', 'Path', 'PathStep',
    'Diff', 'HtmlDiffResult', 'html_diff',
    'generate_fingerprint', 'extract_relative_path', 'normalize_path'
]
