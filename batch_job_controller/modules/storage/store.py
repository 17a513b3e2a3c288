import os
import tempfile
from pathlib import Path


class StorageError(ValueError):
    """Raised for paths that cannot be stored below the report directory."""


class ReportStore:
    def __init__(self, root: str):
        """
        Initialize report store.

        Args:
            root: Report directory, one subdirectory per execution
        """
        self.root = Path(root)

    def path_for(self, relative_path: str) -> Path:
        """
        Resolve a relative path below the root.

        Raises:
            StorageError: If the path is absolute or escapes the root
        """
        if not relative_path or os.path.isabs(relative_path):
            raise StorageError(f"invalid path {relative_path!r}")
        root = self.root.resolve()
        target = (root / relative_path).resolve()
        if target == root or root not in target.parents:
            raise StorageError(f"path {relative_path!r} escapes the report directory")
        return target

    def write(self, relative_path: str, data: bytes) -> Path:
        """
        Write data to a file below the root.

        The file appears complete or not at all: data goes to a temporary
        file in the same directory which then replaces the target.

        Returns:
            Absolute path of the written file
        """
        target = self.path_for(relative_path)
        target.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp = tempfile.mkstemp(dir=target.parent, prefix=".tmp-")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.chmod(tmp, 0o644)
            os.replace(tmp, target)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
        return target
