"""
Configuration loader - YAML files or [tool.deadexport] in pyproject.toml
"""

from __future__ import annotations
from pathlib import Path
from typing import Dict, Any, Optional, List
from dataclasses import dataclass, field

try:
    import yaml
except ImportError:
    yaml = None

try:  # py3.11+
    import tomllib as tomli
except ImportError:
    try:
        import tomli
    except ImportError:
        tomli = None

from .loader import DEFAULT_EXCLUDE, DEFAULT_INCLUDE, DEFAULT_PATHS
from .targets import SORT_PROTOCOL_METHODS

CONFIG_CANDIDATES = [
    "deadexport.yaml",
    "deadexport.yml",
    ".deadexport.yaml",
    ".deadexport.yml",
    "pyproject.toml",  # only with a [tool.deadexport] table
]

OUTPUT_FORMATS = ("text", "json")


@dataclass
class ExportConfig:
    """Settings of an unused-export search."""
    # sources
    paths: List[str] = field(default_factory=lambda: list(DEFAULT_PATHS))
    include: List[str] = field(default_factory=lambda: list(DEFAULT_INCLUDE))
    exclude: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE))
    # what counts as a use
    scope: List[str] = field(default_factory=list)  # empty: the whole repository
    include_own_tests: bool = True
    count_test_usage: bool = False
    skip_vendor: bool = True
    # what is checked
    protocol_methods: List[str] = field(default_factory=lambda: sorted(SORT_PROTOCOL_METHODS))
    ignore: List[str] = field(default_factory=list)
    # reporting
    format: str = "text"
    output: str = "deadexport_results"
    graph_format: str = "svg"
    verbose: bool = False
    debug: bool = False


def load_config(config_path: Optional[Path] = None) -> ExportConfig:
    """
    Load the configuration.

    Args:
        config_path: explicit file; looked up in the current directory when None

    Returns:
        ExportConfig: the loaded configuration, defaults when nothing is found
    """
    if config_path:
        return _load_config_file(Path(config_path))

    found_config = find_config_file()
    if found_config:
        return _load_config_file(found_config)

    return ExportConfig()


def find_config_file(cwd: Optional[Path] = None) -> Optional[Path]:
    """
    Find the configuration file by priority.

    Returns:
        Path: the first candidate present, None when there is none
    """
    base = Path(cwd) if cwd else Path(".")
    for name in CONFIG_CANDIDATES:
        candidate = base / name
        if candidate.exists():
            if candidate.name == "pyproject.toml":
                if _has_deadexport_config(candidate):
                    return candidate
                continue
            return candidate

    return None


def _load_config_file(config_path: Path) -> ExportConfig:
    if not config_path.exists():
        raise FileNotFoundError(f"config file not found: {config_path}")

    suffix = config_path.suffix.lower()

    if suffix in [".yaml", ".yml"]:
        return _load_yaml_config(config_path)
    elif suffix == ".toml":
        return _load_toml_config(config_path)
    else:
        raise ValueError(f"unsupported config file format: {suffix}")


def _load_yaml_config(config_path: Path) -> ExportConfig:
    if yaml is None:
        raise ImportError("PyYAML is required to read YAML config files: pip install pyyaml")

    with config_path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if not data:
        return ExportConfig()

    return _parse_config_data(data)


def _load_toml_config(config_path: Path) -> ExportConfig:
    if tomli is None:
        raise ImportError("tomli is required to read TOML config files: pip install tomli")

    with config_path.open("rb") as f:
        data = tomli.load(f)

    # pyproject.toml layout
    if "tool" in data and "deadexport" in data["tool"]:
        config_data = data["tool"]["deadexport"]
    else:
        config_data = data

    return _parse_config_data(config_data)


def _has_deadexport_config(pyproject_path: Path) -> bool:
    if tomli is None:
        return False

    try:
        with pyproject_path.open("rb") as f:
            data = tomli.load(f)
    except (OSError, ValueError):
        return False
    return "tool" in data and "deadexport" in data["tool"]


def _str_list(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        return [str(x) for x in value]
    raise ValueError(f"expected a list of strings, got {value!r}")


def _parse_config_data(data: Dict[str, Any]) -> ExportConfig:
    if not isinstance(data, dict):
        raise ValueError("config root must be a mapping")
    config = ExportConfig()

    for key in ("paths", "include", "exclude", "scope", "protocol_methods", "ignore"):
        if key in data and data[key] is not None:
            setattr(config, key, _str_list(data[key]))
    # the sorting protocol is always exempt; configured names extend it
    config.protocol_methods = sorted(SORT_PROTOCOL_METHODS | set(config.protocol_methods))

    for key in ("include_own_tests", "count_test_usage", "skip_vendor", "verbose", "debug"):
        if key in data:
            setattr(config, key, bool(data[key]))

    if "format" in data:
        fmt = str(data["format"]).strip().lower()
        if fmt not in OUTPUT_FORMATS:
            raise ValueError(f"unsupported output format: {fmt} (expected one of {', '.join(OUTPUT_FORMATS)})")
        config.format = fmt
    if "output" in data:
        config.output = str(data["output"])
    if "graph_format" in data:
        config.graph_format = str(data["graph_format"]).strip().lower()

    return config


def create_example_config() -> str:
    """Example configuration file content."""
    return """# deadexport configuration
version: "1.0"

# ==== sources ====
paths:
  - "src"
include:
  - "**/*.py"
exclude:
  - "**/.git/**"
  - "**/.tox/**"
  - "**/.venv/**"
  - "**/venv/**"
  - "**/__pycache__/**"
  - "**/build/**"
  - "**/dist/**"

# ==== scope ====
# Module patterns whose references count as uses. Empty: the whole repository.
#   - pattern       that module only
#   - pattern.*     direct submodules only
#   - pattern.**    any descendant (not the module itself)
#   - other * or ?  fnmatch semantics
scope: []
include_own_tests: true   # attach test_<module>.py to the target (never counts as a use)
count_test_usage: false   # let other test files count as uses
skip_vendor: true         # ignore modules with a "vendor" path segment

# ==== checked declarations ====
# Methods that satisfy a protocol implicitly and are never reported.
# Names listed here are added to len, less and swap, which stay exempt.
protocol_methods: ["len", "less", "swap"]
# fnmatch patterns over names or qualified names that are never reported
ignore:
  # - "myproject.api.*"
  # - "*.Meta"

# ==== output ====
format: "text"                 # text | json
output: "deadexport_results"   # directory for --graph
graph_format: "svg"
"""


def save_example_config(output_path: Optional[Path] = None) -> Path:
    if output_path is None:
        output_path = Path("deadexport.yaml")

    content = create_example_config()
    output_path.write_text(content, encoding="utf-8")

    return output_path
