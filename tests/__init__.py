"""Test suite for memento.

Test Structure:
- unit/: Unit tests per package (caching, reconcile, config, utils, cli)
- integration/: Memoized functions over persistent stores and dispatchers
- conftest.py: Shared fixtures (fake clock, stores, cache)
"""
