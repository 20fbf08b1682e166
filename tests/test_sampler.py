import math

import pytest

from dwp.entropy import EntropyError, SystemEntropySource
from dwp.sampler import (
    entropy_bits,
    generate_diceware_number,
    number_digits,
    random_below,
    roll_die,
)


def chi_square(counts):
    expected = sum(counts) / len(counts)
    return sum((c - expected) ** 2 / expected for c in counts)


def test_rejection_sampling_every_byte_every_bound(scripted_source):
    for max_value in range(2, 257):
        limit = 256 - (256 % max_value)
        for byte in range(256):
            source = scripted_source([byte, 0])
            value = random_below(source, max_value)
            assert 0 <= value < max_value
            if byte < limit:
                assert value == byte % max_value
                assert source.position == 1
            else:
                # rejected; the follow-up zero byte is used instead
                assert value == 0
                assert source.position == 2


def test_rejects_consecutive_high_bytes(scripted_source):
    source = scripted_source([252, 253, 254, 255, 9])
    assert random_below(source, 6) == 3
    assert source.position == 5


def test_bound_of_one_always_zero(scripted_source):
    assert random_below(scripted_source([200]), 1) == 0


@pytest.mark.parametrize("max_value", [0, -1, 257])
def test_invalid_bound(scripted_source, max_value):
    with pytest.raises(ValueError):
        random_below(scripted_source([0]), max_value)


def test_uniform_over_full_byte_cycle(scripted_source):
    source = scripted_source(list(range(256)) * 20)
    counts = [0] * 6
    for _ in range(252 * 20):
        counts[random_below(source, 6)] += 1
    assert counts == [840] * 6
    assert chi_square(counts) == 0


def test_uniform_with_system_source():
    source = SystemEntropySource()
    counts = [0] * 6
    for _ in range(60000):
        counts[random_below(source, 6)] += 1
    # 5 degrees of freedom; 30 is far beyond the 0.001 critical value (20.5)
    assert chi_square(counts) < 30


def test_roll_die_range(scripted_source):
    source = scripted_source([0, 5, 6, 251])
    assert [roll_die(source) for _ in range(4)] == [1, 6, 1, 6]


def test_diceware_number_composition(scripted_source):
    source = scripted_source([2, 0, 3, 0, 4])
    assert generate_diceware_number(source) == 31415


def test_diceware_number_skips_rejected_bytes(scripted_source):
    source = scripted_source([255, 2, 0, 3, 0, 252, 4])
    assert generate_diceware_number(source) == 31415


def test_diceware_digits_always_one_to_six():
    source = SystemEntropySource()
    for _ in range(2000):
        number = generate_diceware_number(source)
        digits = number_digits(number)
        assert len(digits) == 5
        assert all(1 <= d <= 6 for d in digits)


def test_generation_error_propagates(scripted_source):
    with pytest.raises(EntropyError):
        generate_diceware_number(scripted_source([0, 0, 0]))


def test_entropy_bits():
    assert entropy_bits(1) == pytest.approx(5 * math.log2(6))
    assert entropy_bits(6) == pytest.approx(77.55, abs=0.01)
    assert entropy_bits(0) == 0
