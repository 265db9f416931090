"""Pytest configuration and fixtures."""

import shutil
import sys
from pathlib import Path

import pytest

# Add src to path for imports when the package is not installed
_SRC = Path(__file__).resolve().parent.parent / "src"
if str(_SRC) not in sys.path:
    sys.path.insert(0, str(_SRC))

from closed_function.application.services.synthesizer import SatelliteSynthesizer  # noqa: E402
from closed_function.domain.entities import HostModule  # noqa: E402
from closed_function.domain.ports import IBundlerPort  # noqa: E402
from closed_function.domain.services import BlockExtractor  # noqa: E402
from closed_function.domain.value_objects import BundleResult  # noqa: E402
from closed_function.infrastructure.config.config import Settings  # noqa: E402
from closed_function.runtime import get_artifact_cache  # noqa: E402


FIXTURES_DIR = Path(__file__).resolve().parent / "fixtures" / "modules"

FIXTURE_MODULES = (
    "module_to_import",
    "module_with_closed",
    "entry_module",
    "module_with_2_closed",
    "module_with_no_single_closed_statement",
    "module_with_capture",
    "module_without_closed",
)


class CopyThroughBundler(IBundlerPort):
    """Bundler that copies the emitted satellite as is."""

    def __init__(self):
        self.requests = []

    async def bundle(self, request):
        self.requests.append(request)
        request.output_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(request.entry_path, request.output_path)
        return BundleResult(success=True, output_path=request.output_path)


@pytest.fixture(autouse=True)
def clean_artifact_cache():
    """Every test starts with an empty process-wide cache."""
    get_artifact_cache().clear()
    yield
    get_artifact_cache().clear()


@pytest.fixture
def fixture_source():
    """Read a fixture module's text by module name."""

    def read(name: str) -> str:
        return (FIXTURES_DIR / f"{name}.py").read_text(encoding="utf-8")

    return read


@pytest.fixture
def source_tree(tmp_path):
    """Copy fixture modules into a fresh source directory."""

    def build(*names: str) -> Path:
        root = tmp_path / "src"
        root.mkdir(exist_ok=True)
        for name in names:
            shutil.copyfile(FIXTURES_DIR / f"{name}.py", root / f"{name}.py")
        return root

    return build


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings with a private work directory."""
    work_dir = tmp_path / "work"
    work_dir.mkdir()
    return Settings(work_dir=str(work_dir), keep_intermediates=False)


@pytest.fixture
def copy_through_bundler() -> CopyThroughBundler:
    return CopyThroughBundler()


@pytest.fixture
def isolated_imports():
    """Remove fixture modules and added sys.path entries after a test."""
    added_paths = []

    def add_path(path: Path) -> None:
        sys.path.insert(0, str(path))
        added_paths.append(str(path))

    for name in FIXTURE_MODULES:
        sys.modules.pop(name, None)
    yield add_path
    for name in FIXTURE_MODULES:
        sys.modules.pop(name, None)
    for path in added_paths:
        if path in sys.path:
            sys.path.remove(path)


@pytest.fixture
def make_satellite(tmp_path):
    """Extract and synthesize a satellite from source text."""

    def make(source: str, name: str = "host.py", fingerprint: str = "0123456789abcdef"):
        host_path = tmp_path / name
        host_path.write_text(source, encoding="utf-8")
        module = HostModule(
            module_id=host_path.stem,
            resource_path=host_path,
            source_text=source,
            build_fingerprint=fingerprint,
        )
        extraction = BlockExtractor(filename=str(host_path)).extract(source)
        assert not extraction.errors, extraction.errors
        synthesizer = SatelliteSynthesizer(tmp_path / "work")
        satellite = synthesizer.synthesize(module, source, extraction, fingerprint)
        return module, satellite

    return make
