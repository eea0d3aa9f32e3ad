"""
Resource, configuration and optional dependency management.
"""
from functools import lru_cache
from importlib import import_module
from pathlib import Path
from typing import Callable, Optional, Union
import os


# Classes --------------------------------------------------------------------------------------------------------------
class Resources:
    """
    Manages package-wide configuration and optional dependencies.

    Attributes:
        package (str): The package name.

    Examples:
        >>> RESOURCES.has_module('numba')
        True
        >>> RESOURCES.find_data('pet91.mat')
        PosixPath('/usr/share/data/pet91.mat')
    """
    DATA_ENV = ('NWALIGN_DATADIR', 'DATADIR')

    def __init__(self) -> None:
        self.package = Path(__file__).parent.parent.name

    @property
    def data_dir(self) -> Optional[Path]:
        """Returns the directory searched for matrix files, taken from the environment."""
        for var in self.DATA_ENV:
            if value := os.environ.get(var): return Path(value)
        return None

    def find_data(self, name: Union[str, Path]) -> Optional[Path]:
        """
        Resolves a data file name.

        The name is used as given if it exists, otherwise it is looked up in `data_dir`.

        Returns:
            The Path if found, else None.
        """
        if (path := Path(name)).is_file(): return path
        if self.data_dir is not None and (path := self.data_dir / name).is_file(): return path
        return None

    @staticmethod
    @lru_cache(maxsize=None)
    def has_module(module_name: str) -> bool:
        """Checks if a python package is installed."""
        try:
            import_module(module_name)
            return True
        except ImportError: return False


# Decorators -----------------------------------------------------------------------------------------------------------
def jit(signature_or_function=None, **options) -> Callable:
    """
    Conditional Numba JIT decorator.

    If 'numba' is installed (checked via RESOURCES), this applies `numba.jit`
    with the provided arguments. Otherwise, it returns the original function unmodified,
    ignoring any compilation options.

    Examples:
        >>> @jit  # Bare usage
        ... def func(): ...

        >>> @jit(nopython=True, cache=True)  # Configured usage
        ... def func(): ...
    """
    # 1. Fallback: Numba not installed
    if not RESOURCES.has_module('numba'):
        if callable(signature_or_function): return signature_or_function  # Handle bare @jit
        def passthrough(func: Callable) -> Callable: return func  # Handle @jit(...)
        return passthrough
    # 2. Apply Numba
    from numba import jit as real_jit
    if callable(signature_or_function): return real_jit(signature_or_function)  # Handle bare @jit
    return real_jit(signature_or_function, **options)  # Handle @jit(...)


# Constants ------------------------------------------------------------------------------------------------------------
RESOURCES = Resources()
