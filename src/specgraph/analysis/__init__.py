"""Analyzers that derive emitter-facing descriptors from extracted operations.

* :mod:`~specgraph.analysis.serialization` -- parameter styles, body
  variants, response variants and content encoding trees.
* :mod:`~specgraph.analysis.validation` -- constraint rules per property.
* :mod:`~specgraph.analysis.resources` -- CRUD resource grouping.
"""

from specgraph.analysis.resources import classify_action, discover_resources, get_form_properties
from specgraph.analysis.serialization import SerializationAnalyzer
from specgraph.analysis.validation import analyze_validation_rules, check_rule

__all__ = [
    "SerializationAnalyzer",
    "analyze_validation_rules",
    "check_rule",
    "classify_action",
    "discover_resources",
    "get_form_properties",
]
