# Docstring for the package
"""
Multi-source reconciliation engine

This package contains the modules for:

- Loading CSV / JSON source exports and their ruleset and mapping config
- Normalizing records (field mapping, matching keys, exact minor-unit amounts,
  RFC 3339 timestamps)
- Detecting cross-source variances (missing records, amount mismatches)
- Writing a hashed, verifiable evidence bundle and an optional review workbook

Subpackages:
- core
- engines
- outputs

"""

# Import modules to be exposed at the package level
from . import core, engines, outputs
__all__ = [
    "core",
    "engines",
    "outputs",
]
