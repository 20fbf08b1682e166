#!/usr/bin/env python3
import argparse
import json
import logging
import sys
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from pygments import highlight
from pygments.formatters import Terminal256Formatter
from pygments.lexers import JsonLexer

from dwp.config import LOG_LEVELS, ConfigError, load_config, setup_logging
from dwp.entropy import SOURCES, EntropyError, EntropySource, open_source
from dwp.sampler import NUM_DICE, entropy_bits, generate_diceware_number, number_digits
from dwp.wordlist import DictionaryError, assemble_passphrase, load_dictionary, lookup_word

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ["text", "json"]


def build_parser(default_source: str = "system") -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate Diceware numbers and passphrases from a cryptographically secure entropy source"
    )
    parser.add_argument("-r", "--rolls", type=int,
                        help="Number of Diceware numbers to generate (default: 10)")
    parser.add_argument("-d", "--dictionary", type=str,
                        help="Path to Diceware dictionary file")
    parser.add_argument("-p", "--passphrase", action="store_true", default=None,
                        help="Output complete passphrase")
    parser.add_argument("-s", "--separator", type=str,
                        help="Separator for passphrase words, used with -p (default: space)")
    parser.add_argument("--source", choices=sorted(SOURCES),
                        help=f"Entropy source (default: {default_source})")
    parser.add_argument("--device", type=str,
                        help="TPM device path (default: /dev/tpmrm0, then /dev/tpm0)")
    parser.add_argument("--config", type=str,
                        help="Path to YAML configuration file")
    parser.add_argument("--log-level", choices=LOG_LEVELS,
                        help="Set the logging level (overrides config file)")
    parser.add_argument("--json", action="store_true",
                        help="Print a JSON report instead of text lines")
    return parser


def resolve_settings(args: argparse.Namespace, config: Dict[str, Any], default_source: str) -> Dict[str, Any]:
    """Merge command-line flags over the config file values."""
    def pick(flag, key):
        return flag if flag is not None else config[key]

    return {
        "rolls": pick(args.rolls, "rolls"),
        "dictionary": pick(args.dictionary, "dictionary"),
        "passphrase": pick(args.passphrase, "passphrase"),
        "separator": pick(args.separator, "separator"),
        "source": args.source or config["source"] or default_source,
        "device": pick(args.device, "device"),
        "format": "json" if args.json else config["format"],
        "log_level": str(args.log_level or config["logging"].get("level") or "WARNING").upper(),
    }


def generate_numbers(
    source: EntropySource, rolls: int, dictionary: Optional[Mapping[int, str]]
) -> Iterator[Tuple[int, int, Optional[str]]]:
    """Yield (index, number, word) for each roll; word is None on a miss or without a dictionary."""
    for i in range(1, rolls + 1):
        number = generate_diceware_number(source, NUM_DICE)
        word = lookup_word(dictionary, number) if dictionary is not None else None
        yield i, number, word


def format_number_line(index: int, number: int, word: Optional[str], has_dictionary: bool) -> str:
    line = f"Diceware number {index}: {number:05d}"
    if has_dictionary:
        if word is not None:
            line += f" - {word}"
        else:
            line += f" - (word not found in dictionary for number {number:05d})"
    return line


def print_text(source: EntropySource, settings: Dict[str, Any], dictionary: Optional[Mapping[int, str]]) -> List[str]:
    """Print each number as soon as it is generated, then the passphrase if requested."""
    words = []
    for index, number, word in generate_numbers(source, settings["rolls"], dictionary):
        print(format_number_line(index, number, word, dictionary is not None))
        if word is not None:
            words.append(word)

    if settings["passphrase"] and words:
        print(f"\nComplete passphrase: {assemble_passphrase(words, settings['separator'])}")
    return words


def build_report(source: EntropySource, settings: Dict[str, Any], dictionary: Optional[Mapping[int, str]]) -> Dict[str, Any]:
    numbers = []
    words = []
    for index, number, word in generate_numbers(source, settings["rolls"], dictionary):
        numbers.append({"index": index, "number": f"{number:05d}", "dice": number_digits(number), "word": word})
        if word is not None:
            words.append(word)

    passphrase = None
    if settings["passphrase"] and words:
        passphrase = assemble_passphrase(words, settings["separator"])
    return {
        "source": source.name,
        "numbers": numbers,
        "passphrase": passphrase,
        "entropy_bits": round(entropy_bits(len(words) if dictionary is not None else len(numbers)), 2),
    }


def print_json(report: Dict[str, Any]) -> None:
    json_str = json.dumps(report, indent=2)
    if sys.stdout.isatty():
        print(highlight(json_str, JsonLexer(), Terminal256Formatter(style="one-dark")), end="")
    else:
        print(json_str)


def validate_settings(settings: Dict[str, Any]) -> None:
    if settings["log_level"] not in LOG_LEVELS:
        raise ConfigError(f"Invalid log level: {settings['log_level']} (choose from {', '.join(LOG_LEVELS)})")
    if settings["format"] not in OUTPUT_FORMATS:
        raise ConfigError(f"Invalid output format: {settings['format']} (choose from {', '.join(OUTPUT_FORMATS)})")
    for key in ("separator", "dictionary", "device"):
        value = settings[key]
        if value is not None and not isinstance(value, str):
            raise ConfigError(f"{key} must be a string")
    if settings["separator"] is None:
        raise ConfigError("separator must be a string")
    if not isinstance(settings["passphrase"], bool):
        raise ConfigError("passphrase must be true or false")


def main(argv: Optional[List[str]] = None, default_source: str = "system") -> int:
    """Handle command-line arguments and generate Diceware numbers."""
    parser = build_parser(default_source)
    args = parser.parse_args(argv)

    try:
        settings = resolve_settings(args, load_config(args.config), default_source)
        validate_settings(settings)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    setup_logging(settings["log_level"])

    rolls = settings["rolls"]
    if isinstance(rolls, bool) or not isinstance(rolls, int) or rolls < 1:
        print("Error: Number of rolls must be at least 1", file=sys.stderr)
        parser.print_help(sys.stderr)
        return 1

    dictionary = None
    if settings["dictionary"]:
        try:
            dictionary = load_dictionary(settings["dictionary"])
        except DictionaryError as e:
            print(f"Error loading dictionary: {e}", file=sys.stderr)
            return 1

    try:
        source = open_source(settings["source"], settings["device"])
    except (EntropyError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        logger.debug("Entropy source could not be opened", exc_info=True)
        return 1

    with source:
        try:
            if settings["format"] == "json":
                report = build_report(source, settings, dictionary)
                print_json(report)
                count = len(report["numbers"])
            else:
                print_text(source, settings, dictionary)
                count = rolls
        except EntropyError as e:
            print(f"Error generating Diceware number: {e}", file=sys.stderr)
            logger.debug("Entropy source failed mid-run", exc_info=True)
            return 1

    logger.info(f"Generated {count} Diceware numbers from the {source.name} source")
    return 0


def main_tpm(argv: Optional[List[str]] = None) -> int:
    """Same tool with the TPM as the default entropy source."""
    return main(argv, default_source="tpm")


if __name__ == "__main__":
    sys.exit(main())
