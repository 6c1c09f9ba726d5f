"""Local project file selection for tree pushes.

This module walks a local project directory and selects the files that make up
the project's source tree, so they can be pushed to the feature branch as a
single commit.

Key Components:
    ProjectFileScanner: Walks a project root and returns (path, content) pairs
        for every file that matches an include pattern and no exclusion.

Selection rules:
    - A file is included when its name matches one of the include patterns
      (``*.py``, ``azure-pipelines.yml``, ...)
    - A file is excluded when its relative path contains one of the exclude
      substrings (``bin``, ``.git/``, ``appsettings.json``, ...), compared
      case-insensitively
    - Patterns from the root ``.gitignore`` are added to the exclusions
    - The loaded settings file, and any file holding a ``PersonalAccessToken``,
      is never selected
    - Files that are not valid UTF-8 text are skipped

Example:
    ```python
    from ado_provisioner.utils.scanner import ProjectFileScanner

    scanner = ProjectFileScanner("path/to/project")
    for path, content in scanner.scan():
        print(f"File: {path} ({len(content)} bytes)")
    ```

Returns:
    List of tuples containing (relative_posix_path, file_content), sorted by path.

Raises:
    ConfigurationError: When the project root is not a directory
"""

import fnmatch
import logging
from collections.abc import Iterable
from pathlib import Path

from ado_provisioner.core.exceptions import ConfigurationError

DEFAULT_INCLUDE_PATTERNS = (
    "*.py",
    "*.cs",
    "*.csproj",
    "*.sln",
    "*.toml",
    "*.cfg",
    "azure-pipelines.yml",
    "*.json",
    ".gitignore",
)
DEFAULT_EXCLUDE_PATTERNS = (
    "bin",
    "obj",
    ".git/",
    ".vs",
    "__pycache__",
    ".venv",
    "appsettings.json",
    "config.json",
    ".azdo",
)
# Settings keys that mark a file as holding a credential
SECRET_MARKERS = ("PersonalAccessToken",)


class ProjectFileScanner:
    """Selects the project files to push from a local directory."""

    GITIGNORE_FILE = ".gitignore"

    def __init__(
        self,
        root: str | Path,
        include: Iterable[str] = DEFAULT_INCLUDE_PATTERNS,
        exclude: Iterable[str] = DEFAULT_EXCLUDE_PATTERNS,
        *,
        use_gitignore: bool = True,
        exclude_files: Iterable[str | Path] = (),
    ) -> None:
        self.root = Path(root)
        self.include = tuple(include)
        self.exclude = tuple(pattern.lower() for pattern in exclude)
        self.use_gitignore = use_gitignore
        # Resolved against the working directory
        self.exclude_files = {Path(path).resolve() for path in exclude_files}

    def scan(self) -> list[tuple[str, str]]:
        """
        Walk the project root and return the selected files.

        Returns:
            Sorted list of (relative_posix_path, content) tuples
        """
        if not self.root.is_dir():
            msg = f"Project root is not a directory: {self.root}"
            raise ConfigurationError(msg)

        logging.info("scanner: scanning project files under %s...", self.root)
        ignored = self._gitignore_patterns() if self.use_gitignore else []

        files = []
        for path in sorted(self.root.rglob("*")):
            if not path.is_file():
                continue
            relative = path.relative_to(self.root).as_posix()
            if not self.is_included(path.name) or self.is_excluded(relative, ignored):
                continue
            if path.resolve() in self.exclude_files:
                logging.info("scanner: skipping settings file %s", relative)
                continue
            try:
                content = path.read_text(encoding="utf-8")
            except UnicodeDecodeError:
                logging.warning("scanner: skipping non-text file %s", relative)
                continue
            if any(marker in content for marker in SECRET_MARKERS):
                logging.warning("scanner: skipping %s, it holds a credential", relative)
                continue
            files.append((relative, content))

        logging.info("scanner: selected %d files", len(files))
        return sorted(files)

    def is_included(self, name: str) -> bool:
        """Whether a file name matches an include pattern."""
        return any(
            fnmatch.fnmatch(name, pattern) if "*" in pattern else name.lower() == pattern.lower()
            for pattern in self.include
        )

    def is_excluded(self, relative_path: str, gitignore: Iterable[str] = ()) -> bool:
        """Whether a relative path hits an exclude substring or a .gitignore pattern."""
        lowered = relative_path.lower()
        if any(pattern in lowered for pattern in self.exclude):
            return True
        return any(self._matches_gitignore(relative_path, pattern) for pattern in gitignore)

    def _gitignore_patterns(self) -> list[str]:
        gitignore = self.root / self.GITIGNORE_FILE
        if not gitignore.is_file():
            return []
        patterns = []
        for line in gitignore.read_text(encoding="utf-8", errors="replace").splitlines():
            line = line.strip()  # noqa: PLW2901
            # Negations are not supported, the pattern is dropped
            if not line or line.startswith(("#", "!")):
                continue
            patterns.append(line)
        logging.debug("scanner: loaded %d .gitignore patterns", len(patterns))
        return patterns

    @staticmethod
    def _matches_gitignore(relative_path: str, pattern: str) -> bool:
        """Approximate gitignore matching against a path and each of its parents."""
        anchored = pattern.startswith("/")
        pattern = pattern.strip("/")
        parts = relative_path.split("/")
        if anchored or "/" in pattern:
            prefixes = ["/".join(parts[: i + 1]) for i in range(len(parts))]
            return any(fnmatch.fnmatch(prefix, pattern) for prefix in prefixes)
        return any(fnmatch.fnmatch(part, pattern) for part in parts)
