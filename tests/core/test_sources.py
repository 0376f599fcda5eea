import warnings
from pathlib import Path

import pytest

APP_DIR = Path(__file__).resolve().parents[2] / "app"


@pytest.mark.parametrize("path", sorted(APP_DIR.rglob("*.py")), ids=lambda p: str(p.relative_to(APP_DIR)))
def test_module_compiles_without_warnings(path):
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        compile(path.read_text(encoding="utf-8"), str(path), "exec")
