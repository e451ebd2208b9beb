"""
deadexport - find the exported declarations of a Python module that nothing
else in the project uses

Simple API:

    from deadexport import find_unused

    for position, descriptor in find_unused("mypkg.values", ["mypkg.**"]):
        print(f"{position}: {descriptor} is exported but not used")
"""


def find_unused(*args, **kwargs):
    """Lazy import wrapper for find_unused to keep package import cheap."""
    from .analysis import find_unused as _find_unused

    return _find_unused(*args, **kwargs)


from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("deadexport")
except PackageNotFoundError:
    # Fallback for development/uninstalled package
    __version__ = "unknown"

__all__ = ["find_unused", "__version__"]
