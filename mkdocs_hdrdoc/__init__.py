"""
mkdocs-hdrdoc: C header API documentation for MkDocs and MDX sites.

Scans C header trees, pairs declarations with their Doxygen-style doc
comments, and writes cross-referenced documentation pages with stable
anchors and a link-integrity check.
"""

__version__ = "1.0.0"
