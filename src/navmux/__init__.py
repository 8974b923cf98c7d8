from importlib.metadata import version

from .router import Router, build_router
from .tree import Match
from .url import MalformedEncodingError

__all__ = [
    "MalformedEncodingError",
    "Match",
    "Router",
    "__version__",
    "build_router",
]

__version__ = version("navmux")
