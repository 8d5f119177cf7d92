"""Keep the config singleton away from the developer's real settings file."""

from __future__ import annotations

import os
import tempfile

os.environ.setdefault("SCANREDACT_DATA_DIR", tempfile.mkdtemp(prefix="scanredact-tests-"))
os.environ.setdefault("SCANREDACT_LLM_API_KEY", "")
