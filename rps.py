import hashlib
import hmac
import logging
import os
import secrets
import sys
from enum import Enum
from typing import NamedTuple

from tabulate import tabulate

logger = logging.getLogger(__name__)

# ==============================================================================
# 1. Error Handling Classes
# ==============================================================================

class ConfigurationError(Exception):
    """
    Raised when the moves given on the command line cannot form a game.
    Provides a formatted message including an example of correct usage.
    """
    _invocation_command = "python"

    @staticmethod
    def set_invocation_command(command: str):
        """Sets the command used to run the script (e.g., 'python' or 'py')."""
        ConfigurationError._invocation_command = command

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)

    def __str__(self) -> str:
        script_name = sys.argv[0] if sys.argv else 'rps.py'
        examples = (
            f"{ConfigurationError._invocation_command} {script_name} Rock Paper Scissors\n"
            f"{ConfigurationError._invocation_command} {script_name} Rock Spock Paper Lizard Scissors"
        )
        return f"\nArgument Error: {self.message}\n\nExample usage:\n{examples}\n"

ConfigurationError.NOT_ENOUGH_MOVES = ConfigurationError("Please specify at least three moves.")
ConfigurationError.EVEN_MOVES = ConfigurationError("The number of moves must be odd.")
ConfigurationError.DUPLICATE_MOVES = ConfigurationError("All moves must be unique.")
ConfigurationError.EMPTY_MOVE = ConfigurationError("Moves must be non-empty strings.")


class UnknownMoveError(KeyError):
    """A move label that is not part of the configured move set."""

    def __init__(self, move: str):
        self.move = move
        super().__init__(move)

    def __str__(self) -> str:
        return f"Unknown move: {self.move!r}"


class SessionStateError(RuntimeError):
    pass

# ==============================================================================
# 2. Data Structure for a Move Set
# ==============================================================================

class MoveSet:
    def __init__(self, moves: list[str]):
        if len(moves) < 3:
            raise ConfigurationError.NOT_ENOUGH_MOVES
        if len(moves) % 2 == 0:
            raise ConfigurationError.EVEN_MOVES
        if not all(isinstance(m, str) and m.strip() for m in moves):
            raise ConfigurationError.EMPTY_MOVE
        if len(set(moves)) != len(moves):
            raise ConfigurationError.DUPLICATE_MOVES
        self._moves = tuple(moves)
        self._positions = {move: i for i, move in enumerate(self._moves)}

    @property
    def moves(self) -> tuple[str, ...]:
        return self._moves

    def index(self, move: str) -> int:
        try:
            return self._positions[move]
        except KeyError:
            raise UnknownMoveError(move) from None

    def __contains__(self, move: object) -> bool:
        return move in self._positions

    def __getitem__(self, index: int) -> str:
        return self._moves[index]

    def __iter__(self):
        return iter(self._moves)

    def __len__(self) -> int:
        return len(self._moves)

    def __str__(self) -> str:
        return ", ".join(self._moves)

# ==============================================================================
# 3. Command-Line Argument Parser
# ==============================================================================

class MoveParser:
    @staticmethod
    def parse(args: list[str]) -> MoveSet:
        return MoveSet([arg.strip() for arg in args])

# ==============================================================================
# 4. Cryptographic Operations Provider
# ==============================================================================

class CryptoProvider:
    KEY_BYTES = 32

    @staticmethod
    def generate_key() -> bytes:
        return secrets.token_bytes(CryptoProvider.KEY_BYTES)

    @staticmethod
    def generate_secure_random(max_val: int) -> int:
        return secrets.randbelow(max_val)

    @staticmethod
    def calculate_hmac(key: bytes, message: str) -> str:
        h = hmac.new(key, message.encode('utf-8'), hashlib.sha256)
        return h.hexdigest().upper()

# ==============================================================================
# 5. Commitment Scheme
# ==============================================================================

class Commitment(NamedTuple):
    key: bytes
    tag: str


class CommitmentScheme:
    """
    Binds the computer to a move before the user chooses.

    Only the tag may be shown before the user's move is fixed; the key is
    revealed afterwards so the user can recompute the tag with ``verify``.
    """

    def __init__(self, crypto_provider: CryptoProvider):
        self.crypto = crypto_provider

    def commit(self, move: str) -> Commitment:
        key = self.crypto.generate_key()
        tag = self.crypto.calculate_hmac(key, move)
        logger.debug("Committed to a move, HMAC=%s", tag)
        return Commitment(key, tag)

    def verify(self, key: bytes | str, move: str, tag: str) -> bool:
        """Recomputes the HMAC; the key may be raw bytes or the hex string shown to the user."""
        if isinstance(key, str):
            try:
                key = bytes.fromhex(key)
            except ValueError:
                return False
        expected = self.crypto.calculate_hmac(key, move)
        return hmac.compare_digest(expected.encode('utf-8'), tag.upper().encode('utf-8'))

# ==============================================================================
# 6. Game Rules
# ==============================================================================

class Outcome(Enum):
    DRAW = ("Draw!", "Draw")
    OPPONENT_WINS = ("Computer wins!", "Lose")
    HUMAN_WINS = ("You win!", "Win")

    def __init__(self, message: str, table_label: str):
        self.message = message
        # Help table cells are from the user's point of view.
        self.table_label = table_label


class CycleRules:
    def __init__(self, moves: MoveSet | list[str]):
        if not isinstance(moves, MoveSet):
            moves = MoveSet(list(moves))
        self.moves = moves
        self.half = len(moves) // 2

    def winner(self, human_move: str, opponent_move: str) -> Outcome:
        u = self.moves.index(human_move)
        c = self.moves.index(opponent_move)
        if u == c:
            return Outcome.DRAW

        n = len(self.moves)
        # A move loses to the `half` moves that follow it in the cycle, boundary included.
        if (c > u and c <= u + self.half) or (c < u and c + n <= u + self.half):
            return Outcome.OPPONENT_WINS
        return Outcome.HUMAN_WINS

    def full_matrix(self) -> dict[tuple[str, str], str]:
        return {
            (user_move, pc_move): self.winner(user_move, pc_move).table_label
            for user_move in self.moves
            for pc_move in self.moves
        }

# ==============================================================================
# 7. Help Table Generation
# ==============================================================================

class HelpTableGenerator:
    @staticmethod
    def generate_table(rules: CycleRules) -> str:
        matrix = rules.full_matrix()
        headers = ["User v PC >"] + list(rules.moves)
        table_data = []
        for user_move in rules.moves:
            row = [user_move]
            for pc_move in rules.moves:
                row.append(matrix[(user_move, pc_move)])
            table_data.append(row)

        first, second, last = rules.moves[0], rules.moves[1], rules.moves[-1]
        intro = (
            "\n--- Help Table ---\n"
            "The results are from the user's point of view (rows) against the PC's move (columns).\n"
            f"For example, '{first}' wins against '{last}' but loses to '{second}'.\n"
        )
        return intro + tabulate(table_data, headers=headers, tablefmt="grid")

# ==============================================================================
# 8. Game Session (commit before the user moves, reveal after)
# ==============================================================================

class SessionState(Enum):
    CONFIGURED = "Configured"
    COMMITTED = "Committed"
    AWAITING_HUMAN_MOVE = "AwaitingHumanMove"
    RESOLVED = "Resolved"


class RoundResult(NamedTuple):
    human_move: str
    opponent_move: str
    outcome: Outcome
    key: bytes
    tag: str


class GameSession:
    """
    One round of the game.

    States only move forward: CONFIGURED -> COMMITTED -> AWAITING_HUMAN_MOVE
    -> RESOLVED. The key and the computer's move are only handed out with the
    result, once the user's move is fixed.
    """

    def __init__(self, rules: CycleRules, crypto_provider: CryptoProvider):
        self.rules = rules
        self.crypto = crypto_provider
        self.commitments = CommitmentScheme(crypto_provider)
        self.state = SessionState.CONFIGURED
        self.result: RoundResult | None = None
        self._opponent_move: str | None = None
        self._commitment: Commitment | None = None

    @property
    def tag(self) -> str:
        if self._commitment is None:
            raise SessionStateError("The computer has not committed to a move yet.")
        return self._commitment.tag

    def start(self) -> str:
        self._expect(SessionState.CONFIGURED)
        moves = self.rules.moves
        self._opponent_move = moves[self.crypto.generate_secure_random(len(moves))]
        self._commitment = self.commitments.commit(self._opponent_move)
        self._advance(SessionState.COMMITTED)
        return self._commitment.tag

    def await_human_move(self):
        self._expect(SessionState.COMMITTED)
        self._advance(SessionState.AWAITING_HUMAN_MOVE)

    def submit(self, human_move: str) -> RoundResult:
        self._expect(SessionState.AWAITING_HUMAN_MOVE)
        outcome = self.rules.winner(human_move, self._opponent_move)
        self.result = RoundResult(
            human_move=human_move,
            opponent_move=self._opponent_move,
            outcome=outcome,
            key=self._commitment.key,
            tag=self._commitment.tag,
        )
        self._advance(SessionState.RESOLVED)
        return self.result

    def _expect(self, state: SessionState):
        if self.state is not state:
            raise SessionStateError(
                f"Session is {self.state.value}, expected {state.value}."
            )

    def _advance(self, state: SessionState):
        logger.debug("Session %s -> %s", self.state.value, state.value)
        self.state = state

# ==============================================================================
# 9. Console User Interface
# ==============================================================================

class GameUI:
    def display_message(self, text: str):
        print(text)

    def display_hmac(self, hmac_hex: str):
        print(f"HMAC: {hmac_hex}")

    def display_result(self, result: RoundResult):
        print(f"Your move: {result.human_move}")
        print(f"Computer move: {result.opponent_move}")
        print(result.outcome.message)
        print(f"HMAC key: {result.key.hex().upper()}")

    def display_verification(self, verified: bool):
        if verified:
            print("Fairness check passed: the HMAC matches the revealed key and move.")
        else:
            print("Fairness check FAILED: the HMAC does not match the revealed key and move!")

    def get_user_choice(self, prompt: str, options: list[str]) -> str:
        while True:
            print(f"\n{prompt}")
            for i, option in enumerate(options, start=1):
                print(f"{i} - {option}")

            print("0 - Exit")
            print("? - Help")

            choice = input("Enter your move: ").strip()

            if choice == '0':
                print("Exiting the game.")
                sys.exit(0)
            if choice == '?':
                return '?'

            if choice.isdecimal():
                choice_int = int(choice)
                if 1 <= choice_int <= len(options):
                    return str(choice_int)

            print("Invalid move. Please try again.")

# ==============================================================================
# 10. Main Game Controller
# ==============================================================================

class GameController:
    def __init__(self, rules: CycleRules, ui: GameUI, crypto_provider: CryptoProvider, help_gen: HelpTableGenerator):
        self.rules = rules
        self.ui = ui
        self.crypto = crypto_provider
        self.help_gen = help_gen

    def run(self):
        self.ui.display_message(f"--- Welcome! Moves in play: {self.rules.moves} ---")
        while True:
            self.play_round()
            play_again = input("\nPlay another round? (y/n): ").strip().lower()
            if play_again != 'y':
                self.ui.display_message("Thanks for playing!")
                break

    def play_round(self) -> RoundResult:
        session = GameSession(self.rules, self.crypto)
        self.ui.display_hmac(session.start())
        session.await_human_move()

        user_move = self._get_player_move_choice()
        result = session.submit(user_move)
        self.ui.display_result(result)

        # Recompute from the values the user was shown.
        verified = CommitmentScheme(self.crypto).verify(
            result.key.hex().upper(), result.opponent_move, result.tag
        )
        if not verified:
            logger.warning("HMAC %s does not match the revealed move %r", result.tag, result.opponent_move)
        self.ui.display_verification(verified)
        return result

    def _get_player_move_choice(self) -> str:
        options = list(self.rules.moves)
        while True:
            choice_str = self.ui.get_user_choice("Available moves:", options)
            if choice_str == '?':
                self.ui.display_message(self.help_gen.generate_table(self.rules))
                continue
            return options[int(choice_str) - 1]

# ==============================================================================
# 11. Main Execution Block
# ==============================================================================

def log_level_from_env() -> int:
    level = logging.getLevelName(os.environ.get("RPS_LOG_LEVEL", "WARNING").strip().upper())
    # Unknown names come back as "Level <name>".
    return level if isinstance(level, int) else logging.WARNING


def main():
    logging.basicConfig(
        level=log_level_from_env(),
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        # Dynamically determine the command used to invoke the script
        if 'py.exe' in sys.executable.lower():
            ConfigurationError.set_invocation_command('py')
        else:
            ConfigurationError.set_invocation_command('python')

        args = sys.argv[1:]
        moves = MoveParser.parse(args)

        ui = GameUI()
        crypto = CryptoProvider()
        rules = CycleRules(moves)
        help_gen = HelpTableGenerator()

        controller = GameController(rules, ui, crypto, help_gen)
        controller.run()

    except ConfigurationError as e:
        print(e, file=sys.stderr)
        sys.exit(1)
    except (KeyboardInterrupt, EOFError):
        print("\nGame interrupted. Goodbye!")
        sys.exit(0)

if __name__ == "__main__":
    main()
