import logging
import re
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional

logger = logging.getLogger(__name__)

# Leading base-10 integer; trailing text after the digits is ignored
NUMBER_PREFIX = re.compile(r"\s*([+-]?[0-9]+)")


class DictionaryError(Exception):
    """Raised when a Diceware dictionary file cannot be read."""


def parse_number(field: str) -> Optional[int]:
    match = NUMBER_PREFIX.match(field)
    if match is None:
        return None
    return int(match.group(1))


def parse_dictionary(lines: Iterable[str]) -> Dict[int, str]:
    """
    Parse tab-separated `number<TAB>word` lines into a number -> word mapping.
    Lines with fewer than two fields or without a leading number are skipped.
    A repeated number keeps the last word seen.
    """
    words = {}
    for lineno, line in enumerate(lines, start=1):
        parts = line.rstrip("\r\n").split("\t")
        if len(parts) < 2:
            logger.debug(f"Skipping line {lineno}: expected at least 2 tab-separated fields")
            continue
        number = parse_number(parts[0])
        if number is None:
            logger.debug(f"Skipping line {lineno}: {parts[0]!r} is not a number")
            continue
        words[number] = parts[1]
    return words


def decode_lines(raw_lines: Iterable[bytes]) -> Iterator[str]:
    """Decode each line as UTF-8, falling back to Latin-1 for legacy wordlists."""
    for lineno, raw in enumerate(raw_lines, start=1):
        try:
            yield raw.decode("utf-8")
        except UnicodeDecodeError:
            logger.debug(f"Line {lineno} is not valid UTF-8, decoding as Latin-1")
            yield raw.decode("latin-1")


def load_dictionary(filepath: str) -> Mapping[int, str]:
    """Load a Diceware dictionary file into a read-only mapping."""
    try:
        with open(filepath, "rb") as wordlist:
            words = parse_dictionary(decode_lines(wordlist))
    except OSError as e:
        raise DictionaryError(str(e)) from e

    logger.info(f"Loaded {len(words)} words from dictionary: {filepath}")
    return MappingProxyType(words)


def lookup_word(dictionary: Mapping[int, str], number: int) -> Optional[str]:
    return dictionary.get(number)


def assemble_passphrase(words: List[str], separator: str = " ") -> str:
    """Join the words in generation order."""
    return separator.join(words)
