"""Public package surface for subruster.

Importing `subruster` exposes the high-level API function (`SUBRUSTER`) and
package version, keeping internals hidden by default.
"""

from .core import SUBRUSTER
from .version import __version__

__all__ = ["SUBRUSTER", "__version__"]
