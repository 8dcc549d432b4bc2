"""Inbox folder scanning, frontmatter parsing, and archive logic."""

import shutil
from datetime import datetime
from pathlib import Path
from typing import Any

import frontmatter


def ensure_dirs(inbox_dir: Path, archive_dir: Path) -> None:
    """Create inbox and archive directories if they don't exist."""
    inbox_dir.mkdir(parents=True, exist_ok=True)
    archive_dir.mkdir(parents=True, exist_ok=True)


def scan_inbox(inbox_dir: Path) -> list[Path]:
    """Return all .md files in inbox_dir, oldest first."""
    files = list(inbox_dir.glob("*.md"))
    return sorted(files, key=lambda p: (p.stat().st_mtime, p.name))


def parse_file(file_path: Path) -> tuple[str, dict[str, Any]]:
    """Parse a question file with optional YAML frontmatter.

    Recognised metadata keys: ``models`` (comma-separated str), ``full`` (bool),
    ``aggregator`` (str), ``timeout`` (seconds). Unknown keys are kept.

    Returns:
        (question_text, metadata). metadata is {} without frontmatter.
    """
    post = frontmatter.load(str(file_path))
    return post.content.strip(), dict(post.metadata)


def archive_file(file_path: Path, archive_dir: Path, *, failed: bool = False) -> Path:
    """Move file to archive_dir with a timestamp prefix, FAILED_ first when failed."""
    timestamp = datetime.now().strftime("%Y-%m-%dT%H%M")
    prefix = "FAILED_" if failed else ""
    dest = archive_dir / f"{prefix}{timestamp}_{file_path.name}"
    shutil.move(str(file_path), str(dest))
    return dest
