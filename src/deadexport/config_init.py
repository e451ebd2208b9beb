"""
Config initialisation - write the example file and show the effective config
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from .config_loader import ExportConfig, find_config_file, load_config, save_example_config


def init_config(output_path: Optional[Path] = None, force: bool = False) -> Path:
    """
    Write an example configuration file.

    Args:
        output_path: target file, deadexport.yaml in the current directory by default
        force: overwrite an existing file without asking

    Returns:
        Path: the configuration file path
    """
    if output_path is None:
        output_path = Path("deadexport.yaml")

    if output_path.exists() and not force:
        print(f"⚠️  Config file already exists: {output_path}")
        response = input("Overwrite? (y/N): ").strip().lower()
        if response not in ["y", "yes"]:
            print("❌ Cancelled")
            return output_path

    save_example_config(output_path)

    print(f"✅ Config file written: {output_path}")
    print("\n💡 Next steps:")
    print("1. Adjust paths to point at your source roots")
    print("2. Narrow scope if only some packages should count as users")
    print("3. Run 'deadexport your.module' to list unused exports")

    return output_path


def format_config_display(config: ExportConfig, source: Optional[Path] = None) -> str:
    lines = []

    lines.append("📋 Effective configuration:")
    lines.append("━" * 50)
    lines.append(f"  📄 Source: {source if source else 'defaults'}")

    lines.append("🔧 Sources:")
    lines.append(f"  📂 Paths: {', '.join(config.paths)}")
    lines.append(f"  ✅ Include: {', '.join(config.include)}")
    lines.append(
        f"  ❌ Exclude: {', '.join(config.exclude[:3])}{'...' if len(config.exclude) > 3 else ''}"
    )

    lines.append("\n🔍 Scope:")
    lines.append(f"  🧭 Patterns: {', '.join(config.scope) if config.scope else 'repository'}")
    lines.append(f"  🧪 Own tests attached: {'yes' if config.include_own_tests else 'no'}")
    lines.append(f"  🧪 Test files count as uses: {'yes' if config.count_test_usage else 'no'}")
    lines.append(f"  📦 Skip vendored modules: {'yes' if config.skip_vendor else 'no'}")

    lines.append("\n🎯 Checked declarations:")
    lines.append(f"  🔁 Protocol methods: {', '.join(config.protocol_methods) or '-'}")
    lines.append(f"  🙈 Ignored: {len(config.ignore)} patterns")

    lines.append("\n📤 Output:")
    lines.append(f"  📄 Format: {config.format}")
    lines.append(f"  📁 Graph directory: {config.output} ({config.graph_format})")

    return "\n".join(lines)


def show_current_config(config_path: Optional[Path] = None) -> None:
    """Print the configuration that a run would use."""
    source = Path(config_path) if config_path else find_config_file()
    config = load_config(source)
    print(format_config_display(config, source))
    print("━" * 50)
    print("💡 Tips:")
    print("  • Generate a config file with 'deadexport --init'")
    print("  • Priority: deadexport.yaml > .deadexport.yaml > pyproject.toml")
