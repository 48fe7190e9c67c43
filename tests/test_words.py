import random

from controlrelay.words import ADJECTIVES, NOUNS, generate_memorable_id


def _split(identifier):
    """Return (adjective, noun, suffix) pairs that compose the identifier."""
    stem = identifier.rstrip("0123456789")
    suffix = identifier[len(stem):]
    return [
        (adj, stem[len(adj):], suffix)
        for adj in ADJECTIVES
        if stem.startswith(adj) and stem[len(adj):] in NOUNS
    ]


class _Recorder:
    """A container that refuses everything the predicate rejects and logs lookups."""

    def __init__(self, accept):
        self.accept = accept
        self.lookups = []

    def __contains__(self, item):
        self.lookups.append(item)
        return not self.accept(item)


class _FixedChoice:
    """A stand-in random source that always picks the same position."""

    def __init__(self, index):
        self.index = index

    def choice(self, seq):
        return seq[self.index]


def test_first_words_of_each_list():
    assert generate_memorable_id(set(), _FixedChoice(0)) == "AgileAlbatross"


def test_last_words_of_each_list():
    assert generate_memorable_id(set(), _FixedChoice(-1)) == "ZestyZodiac"


def test_fixed_choice_numbered_when_plain_taken():
    taken = {"AgileAlbatross"}
    assert generate_memorable_id(taken, _FixedChoice(0)) == "AgileAlbatross2"


def test_plain_id_is_adjective_plus_noun():
    identifier = generate_memorable_id(set(), random.Random(1))
    parts = _split(identifier)
    assert parts
    assert all(suffix == "" for _, _, suffix in parts)


def test_same_seed_gives_same_id():
    first = generate_memorable_id(set(), random.Random(42))
    second = generate_memorable_id(set(), random.Random(42))
    assert first == second


def test_default_rng_still_produces_valid_id():
    recorder = _Recorder(lambda item: True)
    identifier = generate_memorable_id(recorder)
    assert recorder.lookups == [identifier]
    parts = _split(identifier)
    assert len(parts) >= 1
    assert parts[0][2] == ""


def test_id_avoids_taken_values():
    taken = set()
    rng = random.Random(7)
    for _ in range(200):
        identifier = generate_memorable_id(taken, rng)
        assert identifier not in taken
        taken.add(identifier)
    assert len(taken) == 200


def test_falls_back_to_numbered_id_after_ten_attempts():
    recorder = _Recorder(lambda item: item[-1].isdigit())
    identifier = generate_memorable_id(recorder, random.Random(3))
    assert identifier.endswith("2")
    assert len(recorder.lookups) == 11
    assert all(not item[-1].isdigit() for item in recorder.lookups[:10])
    parts = _split(identifier)
    assert parts and parts[0][2] == "2"


def test_counter_increases_until_free():
    recorder = _Recorder(lambda item: item.endswith("5"))
    identifier = generate_memorable_id(recorder, random.Random(11))
    numbered = recorder.lookups[10:]
    assert [item[-1] for item in numbered] == ["2", "3", "4", "5"]
    assert identifier == numbered[-1]
    assert _split(identifier)
    assert _split(identifier)[0][2] == "5"


def test_first_free_plain_candidate_is_returned():
    calls = {"count": 0}

    class RejectFirstThree:
        def __contains__(self, item):
            calls["count"] += 1
            return calls["count"] <= 3

    identifier = generate_memorable_id(RejectFirstThree(), random.Random(5))
    assert calls["count"] == 4
    assert not identifier[-1].isdigit()
    assert _split(identifier)