# auto-import submodules and subpackages for convenience
from . import common, models, types, evaluation

from importlib.metadata import version as _distribution_version, PackageNotFoundError

try:
    __version__ = version = _distribution_version('vargmm')  # read version from installation catalog
except PackageNotFoundError:
    try:
        from os.path import dirname, join
        from setuptools_scm import get_version
        __version__ = get_version(join(dirname(__file__), "../"))  # read version from git source
    except (ImportError, LookupError):
        from sys import stderr
        stderr.write("Cannot determine VarGMM package version, install properly "
                     "or install \'setuptools_scm\' when running in GIT project dir.\n")
        __version__ = "UNKNOWN_VERSION"
