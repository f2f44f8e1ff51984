"""Tests for the seeded shuffle used to order study sessions."""
from bloomquest.services.shuffle import cyrb53, mulberry32, deterministic_shuffle, session_seed


class TestCyrb53:
    """Test cyrb53 hash."""

    def test_stable_for_same_input(self):
        assert cyrb53("u1:d1:Remember") == cyrb53("u1:d1:Remember")

    def test_within_53_bits(self):
        for text in ["", "a", "u1:d1:Remember", "ελληνικά", "🌸 bloom"]:
            value = cyrb53(text)
            assert 0 <= value < 2 ** 53

    def test_seed_changes_hash(self):
        assert cyrb53("deck", seed=1) != cyrb53("deck", seed=2)

    def test_different_strings_differ(self):
        assert cyrb53("u1:d1:Remember") != cyrb53("u1:d1:Apply")


class TestMulberry32:
    """Test mulberry32 generator."""

    def test_same_seed_same_sequence(self):
        first = mulberry32(12345)
        second = mulberry32(12345)
        assert [first() for _ in range(20)] == [second() for _ in range(20)]

    def test_values_in_unit_interval(self):
        rand = mulberry32(cyrb53("range-check"))
        for _ in range(1000):
            value = rand()
            assert 0 <= value < 1

    def test_seed_truncated_to_32_bits(self):
        low = mulberry32(7)
        high = mulberry32(7 + 2 ** 32)
        assert low() == high()


class TestDeterministicShuffle:
    """Test deterministic_shuffle function."""

    def test_pure_function(self):
        items = ["a", "b", "c"]
        assert deterministic_shuffle(items, "u1:d1:Remember") == deterministic_shuffle(items, "u1:d1:Remember")

    def test_is_permutation(self):
        items = [f"card-{i}" for i in range(25)]
        shuffled = deterministic_shuffle(items, "u1:d1:Apply")

        assert sorted(shuffled) == sorted(items)
        assert len(shuffled) == len(items)

    def test_input_not_modified(self):
        items = ["a", "b", "c", "d"]
        deterministic_shuffle(items, "seed")
        assert items == ["a", "b", "c", "d"]

    def test_different_seeds_usually_differ(self):
        items = list(range(20))
        orders = {tuple(deterministic_shuffle(items, f"u{n}:d1:Remember")) for n in range(10)}
        assert len(orders) > 1

    def test_small_inputs(self):
        assert deterministic_shuffle([], "seed") == []
        assert deterministic_shuffle(["only"], "seed") == ["only"]

    def test_session_seed_format(self):
        assert session_seed("u1", "d1", "Remember") == "u1:d1:Remember"
