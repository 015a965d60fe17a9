"""
polarity-swimlane - Swimlane enrichment integration

Looks up observable entities (IPs, emails, hashes, domains, URLs, CVEs)
in a Swimlane case-management instance and returns highlighted,
presentation-ready record matches.
"""

__version__ = "0.1.0"
