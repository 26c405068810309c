from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure `import src...` works when pytest uses importlib import mode.
REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))


@pytest.fixture()
def small_corpus() -> dict[int, dict[int, float]]:
    """Five users; Pearson against user 1 gives 1.0, -1.0, ~0.866 and one undefined."""
    return {
        1: {1: 5.0, 2: 3.0, 3: 1.0},
        2: {1: 4.0, 2: 3.0, 3: 2.0, 4: 5.0},
        3: {1: 1.0, 2: 3.0, 3: 5.0, 4: 1.0, 5: 4.0},
        4: {1: 5.0, 2: 2.0, 3: 2.0, 5: 5.0},
        5: {4: 3.0},
    }
