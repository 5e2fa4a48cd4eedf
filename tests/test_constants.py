"""
Centralized test credentials and secrets.

Loaded from environment variables when available, with clearly
non-production placeholders as fallbacks.
"""

from __future__ import annotations

import os

TEST_INTERNAL_JOB_TOKEN = os.environ.get("TEST_INTERNAL_JOB_TOKEN") or "test-internal-token"

# IP Australia OAuth client (adapter tests with mocked HTTP)
TEST_IPA_CLIENT_ID = os.environ.get("TEST_IPA_CLIENT_ID") or "client"
TEST_IPA_CLIENT_SECRET = os.environ.get("TEST_IPA_CLIENT_SECRET") or "x"
