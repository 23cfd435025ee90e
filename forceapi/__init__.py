import sys
from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("forceapi")
except PackageNotFoundError:
    __version__ = "unknown"

if sys.version_info < (3, 8):  # pragma: no cover
    raise Exception("forceapi requires Python 3.8+.")
