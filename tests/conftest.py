import sys
import textwrap
from pathlib import Path

import pytest

# Ensure repo_root/src is available on sys.path before any tests import project modules
REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))


def _w(p: Path, rel: str, content: str) -> None:
    f = p / rel
    f.parent.mkdir(parents=True, exist_ok=True)
    f.write_text(textwrap.dedent(content), encoding="utf-8")


@pytest.fixture
def make_project(tmp_path: Path):
    """Write {relative path: source} under tmp_path/src and return that root."""

    def _make(files: dict) -> Path:
        src = tmp_path / "src"
        src.mkdir(exist_ok=True)
        for rel, content in files.items():
            _w(src, rel, content)
        return src

    return _make


@pytest.fixture
def unused_descriptors():
    """Run a search and return the descriptors of the unused declarations."""
    from deadexport.analysis import find_unused
    from deadexport.config_loader import ExportConfig

    def _run(src: Path, target: str, scope=("**",), include_own_tests: bool = True, **settings) -> list:
        config = ExportConfig(paths=[str(src)], **settings)
        return [desc for _, desc in find_unused(target, list(scope), include_own_tests, config=config)]

    return _run
