"""
Module containing small file-handling utilities.
"""
from pathlib import Path
from typing import Union, TextIO
import gzip

_GZIP_MAGIC = b'\x1f\x8b'


# Functions ------------------------------------------------------------------------------------------------------------
def xopen(path: Union[str, Path], encoding: str = 'ascii') -> TextIO:
    """
    Opens a text file for reading, transparently decompressing gzip files.

    Compression is sniffed from the magic bytes rather than the file extension.

    Args:
        path: Path to the file.
        encoding: Text encoding.

    Returns:
        A text-mode file handle.

    Examples:
        >>> with xopen('blosum62.mat.gz') as f:
        ...     lines = f.readlines()
    """
    with open(path, 'rb') as handle: magic = handle.read(2)
    if magic == _GZIP_MAGIC: return gzip.open(path, 'rt', encoding=encoding)
    return open(path, 'rt', encoding=encoding)
