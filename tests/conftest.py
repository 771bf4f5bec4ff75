from __future__ import annotations

import sys
from pathlib import Path


# Ensure `import fundingscope.*` works when running tests without installing the package.
# The repository layout is flat: the `fundingscope/` package sits next to `tests/`.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))
