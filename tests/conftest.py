"""
Shared test configuration
"""

import os

# Settings are instantiated on import and require these
os.environ.setdefault("GITHUB_WEBHOOK_SECRET", "test-webhook-secret")
os.environ.setdefault("ALLOWED_OWNERS", "octo-org,d7knight2")
os.environ.setdefault("GITHUB_TOKEN", "")
