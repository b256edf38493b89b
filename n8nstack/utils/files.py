"""File operations utilities for n8nstack."""

import os
import tempfile
from typing import Optional


class FileManager:
    """Manages file operations for generated configuration."""

    def __init__(self, verbose: bool = False):
        """Initialize file manager."""
        self.verbose = verbose

    def write_file(self, path: str, content: str, mode: Optional[int] = None) -> str:
        """
        Write a file atomically.

        The content goes to a temporary file in the same directory which is
        then renamed over the target, so readers never see a partial file.

        Args:
            path: Target path
            content: File content
            mode: Optional permission mode (e.g., 0o600)

        Returns:
            str: Path written
        """
        directory = os.path.dirname(os.path.abspath(path))
        os.makedirs(directory, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".n8nstack-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
                f.write(content)
            if mode is not None:
                os.chmod(tmp_path, mode)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

        if self.verbose:
            print(f"Wrote {path}")

        return path

    def write_executable(self, path: str, content: str) -> str:
        """Write a script with mode 0755."""
        return self.write_file(path, content, mode=0o755)

    def chown_tree(self, path: str, uid: int, gid: int) -> int:
        """
        Recursively change ownership of a directory tree.

        Args:
            path: Root of the tree
            uid: Owner user id
            gid: Owner group id

        Returns:
            int: Number of paths changed
        """
        changed = 0
        os.chown(path, uid, gid)
        changed += 1
        for root, dirs, files in os.walk(path):
            for name in dirs + files:
                os.chown(os.path.join(root, name), uid, gid, follow_symlinks=False)
                changed += 1

        if self.verbose:
            print(f"Set ownership {uid}:{gid} on {changed} paths under {path}")

        return changed
