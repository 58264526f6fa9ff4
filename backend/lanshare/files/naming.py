"""Filename sanitizing and collision avoidance."""
import logging
import time
from typing import BinaryIO, Callable, Optional, Tuple

from .errors import IOFailureError
from .storage import Storage

logger = logging.getLogger(__name__)

ALLOWED_PUNCTUATION = frozenset(".-_ ")

# Attempts made by create_unique() after the first candidate is taken.
MAX_CREATE_ATTEMPTS = 100


def sanitize_filename(filename: str) -> str:
    """Map a client-supplied filename onto a single safe path segment.

    Every character other than a letter, digit, ``.``, ``-``, ``_`` or space
    becomes ``_``; surrounding whitespace is then trimmed.  Path separators
    can never survive.

    >>> sanitize_filename("../etc/passwd")
    '.._etc_passwd'
    >>> sanitize_filename("  my report (v2).pdf ")
    'my report _v2_.pdf'
    """
    return "".join(
        c if c.isalnum() or c in ALLOWED_PUNCTUATION else "_"
        for c in filename
    ).strip()


def split_name(name: str) -> Tuple[str, str]:
    """Split *name* into ``(stem, extension)``; the extension keeps its dot.

    Dot-files such as ``.bashrc`` are all stem.  A trailing dot is an empty
    extension, so ``"notes."`` splits into ``("notes", ".")``.
    """
    stem, dot, ext = name.rpartition(".")
    if not stem:
        return name, ""
    return stem, dot + ext


def timestamped_name(name: str, timestamp: int, attempt: int = 0) -> str:
    """Build ``stem_<timestamp>[_<attempt>].ext`` from *name*."""
    stem, ext = split_name(name)
    tag = f"{timestamp}_{attempt}" if attempt else f"{timestamp}"
    return f"{stem}_{tag}{ext}"


def resolve_collision(
    exists: Callable[[str], bool],
    name: str,
    now: Optional[int] = None,
) -> str:
    """Return *name*, or a timestamped variant if *name* is already taken.

    This is a plain check; see :func:`create_unique` for the race-free path.
    """
    if not exists(name):
        return name
    timestamp = int(time.time()) if now is None else now
    return timestamped_name(name, timestamp)


def create_unique(
    storage: Storage,
    name: str,
    now: Optional[int] = None,
) -> Tuple[str, BinaryIO]:
    """Create a new file for *name* without clobbering anything.

    The first candidate comes from :func:`resolve_collision`; the create
    itself is exclusive, and on conflict a numbered suffix is tried next.

    Returns:
        ``(final_name, writable_handle)``

    Raises:
        IOFailureError: If no free name is found or the create fails.
    """
    timestamp = int(time.time()) if now is None else now
    try:
        candidate = resolve_collision(storage.exists, name, now=timestamp)
    except OSError as exc:
        raise IOFailureError(f"Cannot check {name}", filename=name, cause=exc) from exc

    for attempt in range(1, MAX_CREATE_ATTEMPTS + 1):
        try:
            return candidate, storage.create(candidate)
        except FileExistsError:
            logger.debug("Name %s taken, retrying", candidate)
            candidate = timestamped_name(name, timestamp, attempt)
        except OSError as exc:
            raise IOFailureError(
                f"Cannot create {candidate}", filename=candidate, cause=exc
            ) from exc

    raise IOFailureError(f"No free name left for {name}", filename=name)
