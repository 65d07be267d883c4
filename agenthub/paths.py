"""
Path encoding utilities for Claude Code transcript lookup.

Claude Code stores each session transcript under a directory named after the
project path, with every path separator (`/`) replaced by `-`.

WARNING: This encoding is LOSSY - a `-` inside a directory name cannot be told
apart from a separator. The real project path comes from the history log's
`project` field.
"""

from __future__ import annotations

from pathlib import Path

__all__ = ['encode_project_path', 'transcript_path']

PATH_SEPARATOR = '/'
ENCODED_SEPARATOR = '-'


def encode_project_path(path: Path | str) -> str:
    """
    Encode a project path for Claude's directory naming.

    Examples:
        >>> encode_project_path('/Users/chris/project')
        '-Users-chris-project'

        >>> encode_project_path('/Users/chris/My Project.app')
        '-Users-chris-My Project.app'
    """
    return str(path).replace(PATH_SEPARATOR, ENCODED_SEPARATOR)


def transcript_path(data_dir: Path, project_path: str, session_id: str) -> Path:
    """Location of a session's transcript inside a Claude data directory."""
    return data_dir / 'projects' / encode_project_path(project_path) / f'{session_id}.jsonl'
