"""
Top-level module, including package-wide warning categories.
"""
from importlib.metadata import version, PackageNotFoundError

try: __version__ = version(__name__)
except PackageNotFoundError: __version__ = '0.0.0'


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class NWAlignWarning(Warning): pass
class DependencyWarning(NWAlignWarning): pass
