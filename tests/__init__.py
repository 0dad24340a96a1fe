"""
Tests package for blogsync

This package contains all unit and integration tests.

Test organization:
- test_storage.py: Tests for the atomic JSON key/value store
- test_cache.py: Tests for the offline blog snapshot and its filters
- test_queue.py: Tests for the FIFO offline operation queue
- test_sync_engine.py: Tests for online/offline reads, writes and replay
- test_reorder.py: Tests for optimistic reordering and rollback
- test_api_client.py: Tests for the requests-based API client
- test_status_monitor.py: Tests for status.json health tracking
- test_operations.py: Tests for queued operation encoding
- test_connectivity.py: Tests for online/offline transitions and the probe
- test_config.py: Tests for YAML config loading
- test_cli.py: Tests for the command line entry point
- conftest.py: Shared fixtures and test utilities (FakeBlogApi)
"""

__version__ = "1.0.0"
