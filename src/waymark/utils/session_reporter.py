"""
Session Reporter Utility

Renders the state registry of an exploration session as an XML state map and
a JSON report.
"""

import json
import logging
import time
from typing import Any, Dict, Optional
from urllib.parse import urlparse
from xml.dom import minidom
import xml.etree.ElementTree as ET

from ..core.state.registry import StateRegistry

logger = logging.getLogger(__name__)


class SessionReporter:
    """Generates XML and JSON reports from a StateRegistry."""

    def __init__(self, registry: StateRegistry, base_url: str, domain: Optional[str] = None):
        self.registry = registry
        self.base_url = base_url
        self.domain = domain or urlparse(base_url).netloc or base_url

    def generate_xml_state_map(self) -> str:
        """Generate an XML map of discovered states and transitions."""
        summary = self.registry.summary()

        root = ET.Element('ApplicationStateMap')
        root.set('domain', self.domain)
        root.set('base_url', self.base_url)
        root.set('timestamp', str(time.time()))

        summary_elem = ET.SubElement(root, 'Summary')
        ET.SubElement(summary_elem, 'StatesDiscovered').text = str(summary['total_states_discovered'])
        ET.SubElement(summary_elem, 'Transitions').text = str(summary['total_state_transitions'])
        ET.SubElement(summary_elem, 'UniquePaths').text = str(summary['unique_paths_visited'])
        ET.SubElement(summary_elem, 'DeadLoop').text = str(self.registry.is_in_dead_loop()).lower()

        states_section = ET.SubElement(root, 'States')
        for node in self.registry.states():
            state_elem = ET.SubElement(states_section, 'State')
            state_elem.set('fingerprint', node.fingerprint)
            state_elem.set('path', node.relative_path)
            state_elem.set('visits', str(node.visit_count))
            if node.title:
                ET.SubElement(state_elem, 'Title').text = node.title
            for level in ('h1', 'h2'):
                text = getattr(node, level)
                if text:
                    ET.SubElement(state_elem, level.upper()).text = text

        transitions_section = ET.SubElement(root, 'Transitions')
        for edge in self.registry.graph_data()['edges']:
            edge_elem = ET.SubElement(transitions_section, 'Transition')
            edge_elem.set('from', edge['from'])
            edge_elem.set('to', edge['to'])
            edge_elem.set('count', str(edge['count']))

        errors = [t for t in self.registry.get_history() if t.error]
        if errors:
            errors_section = ET.SubElement(root, 'Errors')
            for transition in errors[:10]:  # Limit for XML size
                error_elem = ET.SubElement(errors_section, 'Error')
                error_elem.set('state', transition.to_state.fingerprint)
                error_elem.text = transition.error[:200]

        return self._format_xml(root)

    def generate_json_report(self) -> str:
        """Generate a JSON report of the session."""
        history = self.registry.get_history()
        report = {
            'session_info': {
                'base_url': self.base_url,
                'domain': self.domain,
                'timestamp': time.time()
            },
            'exploration_summary': {
                'states_discovered': len(self.registry.states()),
                'transitions': len(history),
                'errors_found': sum(1 for t in history if t.error),
                'in_dead_loop': self.registry.is_in_dead_loop()
            },
            'graph': self.registry.graph_data(),
            'detailed_results': self.registry.export_to_dict()
        }

        logger.debug(f"📊 JSON report built for {self.domain}")
        return json.dumps(report, indent=2, default=str)

    def _format_xml(self, root: ET.Element) -> str:
        """Format XML with proper indentation."""
        rough_string = ET.tostring(root, encoding='unicode')
        reparsed = minidom.parseString(rough_string)
        return reparsed.toprettyxml(indent="  ")
