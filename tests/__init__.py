"""
Test package marker.

Lets test modules import shared helpers as `tests.helpers`.
"""
