"""
Root conftest: make the src/ packages importable without installing.
Backend fakes and shared fixtures live in tests/conftest.py.
"""

import sys
from pathlib import Path

# Ensure src on path
sys.path.insert(0, str(Path(__file__).parent / "src"))
