"""
Scoped temporary files for inline code.
"""

import logging
import os
import secrets
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

logger = logging.getLogger(__name__)

STAGED_PREFIX = "hostbridge_code_"


def staged_name(suffix: str = ".py") -> str:
    return f"{STAGED_PREFIX}{int(time.time() * 1000)}_{secrets.token_hex(4)}{suffix}"


@contextmanager
def staged_code_file(
    directory: str,
    source: str,
    suffix: str = ".py",
) -> Iterator[Path]:
    """
    Write ``source`` to a fresh file in ``directory`` for the duration of a block.

    The file is created exclusively and removed on every exit path,
    including a failed write and cancellation.

    Usage:
        with staged_code_file("/tmp", "print('hi')") as path:
            result = await runner.run(...)
    """
    path = Path(directory) / staged_name(suffix)
    f = open(path, "x", encoding="utf-8")

    try:
        with f:
            f.write(source)
        yield path
    finally:
        try:
            os.unlink(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove staged file {path}: {e}")
