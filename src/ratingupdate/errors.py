"""Exception types raised by a rating run."""


class EngineError(Exception):
    """Base class for failures that abandon a rating run."""


class StorageError(EngineError):
    """A read or write against the rating store failed; the run is retried next tick."""


class CorruptMatchError(EngineError):
    """A match in the window cannot be rated."""

    def __init__(self, game_id: int, reason: str) -> None:
        self.game_id = game_id
        self.reason = reason
        super().__init__(f"Corrupt match id={game_id}: {reason}")
