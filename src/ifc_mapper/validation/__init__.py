"""Hierarchy consistency checks for mapping sessions."""

from __future__ import annotations

from .hierarchy import HierarchyIssue, is_ancestor, validate_hierarchy

__all__ = ["HierarchyIssue", "is_ancestor", "validate_hierarchy"]
