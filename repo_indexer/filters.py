from .models import EntryKind

SKIP_DIRS = {"node_modules"}
LOCK_FILES = {"package-lock.json", "yarn.lock"}


def is_indexable(path: str, kind: EntryKind) -> bool:
    """Return True if a tree entry should have its content fetched and indexed.

    Only plain files are indexed; directories, submodules and symlinks are not.
    Anything under a node_modules directory and dependency lock files are
    skipped as well.
    """
    if kind != EntryKind.BLOB:
        return False
    parts = path.split("/")
    if any(p in SKIP_DIRS for p in parts):
        return False
    if parts[-1] in LOCK_FILES:
        return False
    return True
