import math
from typing import List

from dwp.entropy import EntropyError, EntropySource

NUM_DICE = 5
DIE_SIDES = 6

BYTE_RANGE = 256


def random_below(source: EntropySource, max_value: int) -> int:
    """
    Return a uniformly distributed integer in [0, max_value) drawn from single
    random bytes. Bytes at or above the largest multiple of max_value that fits
    in a byte are discarded and redrawn, so the result carries no modulo bias.
    """
    if not 0 < max_value <= BYTE_RANGE:
        raise ValueError(f"max_value must be between 1 and {BYTE_RANGE}, got {max_value}")
    limit = BYTE_RANGE - (BYTE_RANGE % max_value)
    while True:
        data = source.read(1)
        if len(data) != 1:
            raise EntropyError(f"Expected 1 random byte, got {len(data)}")
        if data[0] < limit:
            return data[0] % max_value


def roll_die(source: EntropySource, sides: int = DIE_SIDES) -> int:
    """Roll one die, giving a value in 1..sides."""
    return random_below(source, sides) + 1


def generate_diceware_number(source: EntropySource, num_dice: int = NUM_DICE) -> int:
    """Roll num_dice dice and place each roll in its own decimal digit (3,1,4,1,5 -> 31415)."""
    result = 0
    for _ in range(num_dice):
        result = result * 10 + roll_die(source)
    return result


def number_digits(number: int) -> List[int]:
    return [int(c) for c in str(number)]


def entropy_bits(word_count: int, num_dice: int = NUM_DICE, sides: int = DIE_SIDES) -> float:
    """Bits of entropy in word_count independently generated Diceware numbers."""
    return word_count * num_dice * math.log2(sides)
