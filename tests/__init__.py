"""
Tests package for socialpublish

This package contains all unit and integration tests.

Test organization:
- test_validation.py / test_chain.py / test_broadcast.py: publish orchestration
- test_richtext.py: Bluesky facet engine (byte offsets, link shortening)
- test_*_client.py: platform adapters against mocked sessions / SDK clients
- test_documents.py / test_images.py: storage collaborators
- conftest.py: Shared fixtures and test utilities
"""

__version__ = "1.0.0"
