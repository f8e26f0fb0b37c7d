"""Map OWL ontologies onto the IFC class/property dictionary."""

from __future__ import annotations

__version__ = "0.1.0"
