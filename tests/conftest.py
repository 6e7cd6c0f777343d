import pytest

from rps import CryptoProvider, CycleRules, MoveSet

CLASSIC_MOVES = ["Rock", "Paper", "Scissors"]
# Each move loses to the two that follow it in this ordering and beats the two before it.
LIZARD_SPOCK_MOVES = ["Rock", "Spock", "Paper", "Lizard", "Scissors"]


class FixedCryptoProvider(CryptoProvider):
    """Replays a fixed sequence of picks and always hands out the same key."""

    def __init__(self, picks=(0,), key: bytes = bytes(range(32))):
        self.picks = list(picks)
        self.key = key
        self.calls = 0

    def generate_key(self) -> bytes:
        return self.key

    def generate_secure_random(self, max_val: int) -> int:
        pick = self.picks[self.calls % len(self.picks)]
        self.calls += 1
        return pick % max_val


def make_moves(n: int) -> list[str]:
    return [f"move{i}" for i in range(n)]


@pytest.fixture
def classic_rules():
    return CycleRules(MoveSet(CLASSIC_MOVES))


@pytest.fixture
def lizard_spock_rules():
    return CycleRules(MoveSet(LIZARD_SPOCK_MOVES))


@pytest.fixture
def fixed_crypto():
    return FixedCryptoProvider()
