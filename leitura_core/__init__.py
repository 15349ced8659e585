"""Core (UI-agnostic) reading-audit logic.

This package contains:
- filter options, selection state and validation
- request parameter building for the external RPC service
- row normalization and indicator aggregation
- severity classification, pagination and export projection
- report payload builders (JSON-serializable dicts)
"""
