"""
Shared ledger core.

This package is intentionally split into:
- models: immutable entry / snapshot / aggregate shapes
- schema: pydantic models for the stored document and add intents
- aggregation: pure derivation (no store dependency) for deterministic testing
- mirror: ordered local copy of the remote collection
- gateway: validated add/delete against the remote store
- view: mirror + aggregation composed for a presentation layer
"""
