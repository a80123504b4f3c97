"""Classification tables for scanning.

These tables are built once at import time and never mutated.
"""

import os
import sys

# =============================================================================
# Folded directories - sized as one opaque entry, never expanded
# =============================================================================

FOLD_DIRS = frozenset(
    {
        # Version control
        ".git",
        ".svn",
        ".hg",
        # JavaScript / Node
        "node_modules",
        "bower_components",
        ".npm",
        ".tnpm",
        ".yarn",
        ".pnpm-store",
        "_cacache",
        "_npx",
        # Python
        ".venv",
        "venv",
        "virtualenv",
        "__pycache__",
        ".pytest_cache",
        ".mypy_cache",
        ".ruff_cache",
        ".tox",
        ".eggs",
        "site-packages",
        ".conda",
        ".ipynb_checkpoints",
        # Ruby / JVM / Rust / Go
        ".bundle",
        ".gradle",
        ".m2",
        ".cargo",
        ".rustup",
        ".ivy2",
        # Build outputs
        "target",
        ".next",
        ".nuxt",
        ".output",
        ".parcel-cache",
        ".turbo",
        ".vite",
        ".nx",
        ".angular",
        ".svelte-kit",
        ".astro",
        ".docusaurus",
        ".terraform",
        # Apple development
        "DerivedData",
        "Pods",
        "Carthage",
        ".build",
        ".dart_tool",
        "CoreSimulator",
        # Generic caches
        ".cache",
        "Caches",
    }
)

# npm-style cache roots whose shard subdirectories are folded too
_NPM_CACHE_MARKERS = ("/.npm/", "/.tnpm/")
_NPM_CACHE_ROOTS = frozenset({".npm", ".tnpm"})

# =============================================================================
# Files never reported as large files (source and text formats)
# =============================================================================

SKIP_EXTENSIONS = frozenset(
    {
        ".go", ".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs",
        ".py", ".pyi", ".rb", ".java", ".kt", ".scala", ".swift",
        ".c", ".h", ".cc", ".cpp", ".hpp", ".m", ".mm", ".rs",
        ".cs", ".php", ".lua", ".sh", ".zsh", ".bash",
        ".css", ".scss", ".less", ".html", ".htm", ".vue", ".svelte",
        ".md", ".rst", ".txt", ".log", ".csv", ".tsv",
        ".json", ".yaml", ".yml", ".toml", ".xml", ".ini", ".cfg", ".conf",
        ".lock", ".sql",
    }
)

# =============================================================================
# Top-level OS directories skipped entirely when scanning "/"
# =============================================================================

_DARWIN_SKIP_DIRS = frozenset(
    {
        "dev",
        "tmp",
        "private",
        "cores",
        "net",
        "home",
        "System",
        "sbin",
        "bin",
        "etc",
        "var",
        "opt",
        "usr",
        "Volumes",
        "Network",
        ".vol",
        ".Spotlight-V100",
        ".fseventsd",
        ".DocumentRevisions-V100",
        ".TemporaryItems",
        ".MobileBackups",
    }
)

# Virtual and runtime filesystems only
_LINUX_SKIP_DIRS = frozenset({"proc", "sys", "dev", "run", "tmp", "lost+found"})


def system_skip_dirs(platform: str = sys.platform) -> frozenset[str]:
    """Names under "/" that are never listed or counted on this platform."""
    if platform == "darwin":
        return _DARWIN_SKIP_DIRS
    return _LINUX_SKIP_DIRS


SKIP_SYSTEM_DIRS = system_skip_dirs()


# =============================================================================
# Cleanable hint - project dependencies and build outputs
# =============================================================================

PROJECT_DEPENDENCY_DIRS = frozenset(
    {
        "node_modules", "bower_components", ".yarn", ".pnpm-store",
        "venv", ".venv", "virtualenv", "__pycache__", ".pytest_cache",
        ".mypy_cache", ".ruff_cache", ".tox", ".eggs", "htmlcov",
        ".ipynb_checkpoints", "vendor", ".bundle", ".gradle", "out",
        "build", "dist", "target", ".next", ".nuxt", ".output",
        ".parcel-cache", ".turbo", ".vite", ".nx", "coverage", ".coverage",
        ".nyc_output", ".angular", ".svelte-kit", ".astro", ".docusaurus",
        "DerivedData", "Pods", ".build", "Carthage", ".dart_tool", ".terraform",
    }
)

# Areas already covered by system cache cleanup, so never hinted
SYSTEM_CLEANUP_AREAS = (
    "/Library/Caches/",
    "/Library/Logs/",
    "/Library/Saved Application State/",
    "/.Trash/",
    "/Library/DiagnosticReports/",
)


def should_fold_dir(name: str, path: str) -> bool:
    """Check whether a directory is reported as one opaque entry."""
    if name in FOLD_DIRS:
        return True

    # npm cache shards: .npm/_cacache/*, .npm/a/*, .tnpm/*
    if any(marker in path for marker in _NPM_CACHE_MARKERS):
        parent = os.path.basename(os.path.dirname(path))
        if parent in _NPM_CACHE_ROOTS or parent.startswith("_"):
            return True
        if len(name) == 1:
            return True

    return False


def should_skip_for_large_files(path: str) -> bool:
    """Check whether a file's extension excludes it from large-file tracking."""
    return os.path.splitext(path)[1].lower() in SKIP_EXTENSIONS


def is_in_folded_dir(path: str) -> bool:
    """Check whether any component of a path is a folded directory name."""
    return any(part in FOLD_DIRS for part in path.split(os.sep))


def is_cleanable_dir(path: str) -> bool:
    """Check whether a directory looks like a rebuildable project artifact."""
    if not path:
        return False
    if any(area in path for area in SYSTEM_CLEANUP_AREAS):
        return False
    return os.path.basename(path) in PROJECT_DEPENDENCY_DIRS
