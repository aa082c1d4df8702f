"""Pytest configuration.

Tests import the `finance_ai` package straight from the repository root, so `pytest` works
without installing the package first.
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure `import finance_ai...` works when running pytest without installing the package.
REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))
