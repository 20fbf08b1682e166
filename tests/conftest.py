from pathlib import Path
from typing import Iterable

import pytest

from dwp.entropy import EntropyError, EntropySource


class ScriptedSource(EntropySource):
    """Replays a fixed byte sequence, then fails like an exhausted device."""

    name = "scripted"

    def __init__(self, data: Iterable[int]):
        self.data = bytes(data)
        self.position = 0
        self.closed = False

    def read(self, n: int) -> bytes:
        if self.closed:
            raise EntropyError("source is closed")
        if self.position + n > len(self.data):
            raise EntropyError("scripted entropy exhausted")
        chunk = self.data[self.position:self.position + n]
        self.position += n
        return chunk

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def scripted_source():
    return ScriptedSource


@pytest.fixture
def dictionary_file(tmp_path) -> Path:
    path = tmp_path / "wordlist.txt"
    path.write_text("11111\tapple\n11112\tbanana\n22222\tcherry\n", encoding="utf-8")
    return path
