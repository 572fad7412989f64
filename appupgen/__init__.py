"""Appupgen: reversible hot-upgrade instructions for Erlang/OTP releases.

Compares two releases (or two ebin directories of one application) and
writes ``.appup`` files:
  - BEAM container reader with a volatile-chunk-aware comparator
  - Release and directory diffing (added / deleted / changed modules)
  - Dependency-aware instruction generation from import tables
  - Supervisor child-spec diffing through a transient ``init/1`` call
  - Byte-exact inversion of the upgrade plan into the downgrade plan
  - Version-pattern keyed pre/post fragment merging
"""

__version__ = "0.1.0"
__description__ = "Generate reversible .appup files by diffing compiled Erlang releases"

from appupgen.core.planner import AppupPlanner
from appupgen.cli.app import app as cli

__all__ = ["AppupPlanner", "cli", "__version__"]
