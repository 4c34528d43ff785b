from __future__ import annotations

import sys
from pathlib import Path

# tests/<area>/ sit one level below the repo root; make recon_engine importable
# without an editable install.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT))
