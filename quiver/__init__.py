__path__ = __import__("pkgutil").extend_path(__path__, __name__)  # NOQA: F-821
__title__ = 'quiver'
__author__ = 'Quiver contributors'
__license__ = 'MIT'
# Placeholder, modified by dynamic-versioning.
__version__ = "0.0.0"

import logging
import os

from .application import *
from .clauses import *
from .faults import *
from .models import *
from .plugins import *
from .tokenizer import *
from .values import *

VersionInfo = __import__("collections").namedtuple("VersionInfo", (
    "major",
    "minor",
    "micro",
    "releaselevel",
    "serial",
    "metadata"
))

# Placeholder, modified by dynamic-versioning.
version_info = VersionInfo(0, 0, 0, "final", 0, "")

# Library logging stays silent unless QUIVER_LOG_LEVEL names a level.
if _level := os.environ.get("QUIVER_LOG_LEVEL"):
    _handler = logging.StreamHandler()
    _handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    logging.getLogger(__name__).addHandler(_handler)
    logging.getLogger(__name__).setLevel(_level.upper())
    del _handler
del _level
logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = (
    "__path__",
    "__title__",
    "__author__",
    "__license__",
    "__version__",
    "version_info"
)

# Load the exposed API of the application
__all__ += application.__all__  # type: ignore[attr-defined]
# Load the exposed API of the clauses
__all__ += clauses.__all__  # type: ignore[attr-defined]
# Load the exposed API of the faults
__all__ += faults.__all__  # type: ignore[attr-defined]
# Load the exposed API of the models
__all__ += models.__all__  # type: ignore[attr-defined]
# Load the exposed API of the plugins
__all__ += plugins.__all__  # type: ignore[attr-defined]
# Load the exposed API of the tokenizer
__all__ += tokenizer.__all__  # type: ignore[attr-defined]
# Load the exposed API of the values
__all__ += values.__all__  # type: ignore[attr-defined]
