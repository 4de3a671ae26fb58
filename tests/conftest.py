"""
pytest configuration and fixtures for mediabackup tests.
"""

import io
import os
import sys
import time
from dataclasses import dataclass, replace
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Union

import pytest

from mediabackup.metadata import MetadataField, MetadataProvider, NullProvider
from mediabackup.models import MediaFile


@dataclass
class CliResult:
    """Result from running CLI command."""
    exit_code: int
    output: str
    error: str


class FakeProvider(MetadataProvider):
    """Deterministic metadata provider keyed by file name.

    Values may be a raw date string, None (no entry), an exception instance
    (raised), or a float (seconds to stall before answering None).
    """

    name = "fake"

    def __init__(self, answers: Optional[Dict[str, Union[str, None, Exception, float]]] = None):
        self.answers = answers or {}
        self.calls: List[tuple] = []

    def read_date(self, path: Path, field: MetadataField) -> Optional[str]:
        self.calls.append((path.name, field))
        answer = self.answers.get(path.name)
        if isinstance(answer, Exception):
            raise answer
        if isinstance(answer, float):
            time.sleep(answer)
            return None
        return answer


@pytest.fixture
def fake_provider():
    """Factory for FakeProvider instances."""
    return FakeProvider


@pytest.fixture
def src(tmp_path: Path) -> Path:
    """Empty source directory."""
    d = tmp_path / "source"
    d.mkdir()
    return d


@pytest.fixture
def dest(tmp_path: Path) -> Path:
    """Destination path (not created)."""
    return tmp_path / "backup"


@pytest.fixture
def make_media():
    """Create a media file and return its MediaFile snapshot.

    Args:
        path: file to create (parents are created)
        size: byte length; ignored when content is given
        content: exact bytes (optional)
        fill: byte used to build ``size`` bytes of content
        mtime: modification/access time as datetime (optional)
        created: override the snapshot's creation time (optional)
    """

    def create(path: Path, size: int = 50 * 1024, content: Optional[bytes] = None,
               fill: bytes = b"a", mtime: Optional[datetime] = None,
               created: Optional[datetime] = None) -> MediaFile:
        path.parent.mkdir(parents=True, exist_ok=True)
        if content is None:
            content = (fill * size)[:size]
        path.write_bytes(content)

        if mtime is not None:
            stamp = mtime.timestamp()
            os.utime(path, (stamp, stamp))

        media = MediaFile.from_path(path)
        if created is not None:
            media = replace(media, created=created)
        return media

    return create


@pytest.fixture
def null_metadata(monkeypatch):
    """Keep the pipeline from shelling out to exiftool/ffprobe."""
    monkeypatch.setattr("mediabackup.metadata.default_provider",
                        lambda timeout=10.0: NullProvider())


@pytest.fixture
def test_config_path(tmp_path):
    """Isolated config path; history and audit logs land beside it."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir / "config.yml"


@pytest.fixture
def cli_runner(null_metadata):
    """Create a CLI runner that captures output and uses a test config."""

    def run_cli(*args, config_path=None, answers=("n",)):
        """Run mediabackup CLI with given arguments.

        Args:
            *args: Command line arguments (source, dest, --flags, etc)
            config_path: Optional config path for test isolation
            answers: Replies handed to interactive prompts, in order

        Returns:
            CliResult with exit_code, output, and error
        """
        from mediabackup.cli import main
        from mediabackup.constants import get_console

        old_stdout, old_stderr, old_argv = sys.stdout, sys.stderr, sys.argv
        stdout, stderr = io.StringIO(), io.StringIO()

        console = get_console()
        replies = list(answers)
        console.input = lambda prompt="": replies.pop(0) if replies else ""

        try:
            sys.stdout = stdout
            sys.stderr = stderr
            sys.argv = ['mediabackup'] + [str(a) for a in args]
            exit_code = main(config_path=config_path)
        except SystemExit as e:
            exit_code = e.code if e.code is not None else 0
        finally:
            sys.stdout, sys.stderr, sys.argv = old_stdout, old_stderr, old_argv
            del console.input

        return CliResult(exit_code=exit_code, output=stdout.getvalue(), error=stderr.getvalue())

    return run_cli
