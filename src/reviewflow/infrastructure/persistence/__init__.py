"""
Persistence adapters for orchestration logs and plans.
"""

from reviewflow.infrastructure.persistence.filesystem import (
    DEFAULT_LOG_DIR,
    FilesystemLogStore,
    create_transcript_path,
    ensure_log_dir,
    get_log_path,
    get_transcripts_dir,
    load_transcript,
    save_transcript,
)
from reviewflow.infrastructure.persistence.memory import (
    InMemoryLogStore,
)

__all__ = [
    "DEFAULT_LOG_DIR",
    "FilesystemLogStore",
    "InMemoryLogStore",
    "create_transcript_path",
    "ensure_log_dir",
    "get_log_path",
    "get_transcripts_dir",
    "load_transcript",
    "save_transcript",
]
