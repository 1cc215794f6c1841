"""Exception hierarchy shared by the rules engine and the notation codecs."""


class ChessError(Exception):
    """Base class for every domain error raised by the engine."""


class ConstructionError(ChessError, ValueError):
    """A board or player was built from inconsistent data."""


class IllegalMoveError(ChessError, ValueError):
    """The requested move is not in the current legal-move set."""


class IllegalStateError(ChessError, RuntimeError):
    """The action is not allowed in the current game state."""


class FormatError(ChessError, ValueError):
    """Text could not be decoded into a position, move or game."""


class FENFormatError(FormatError):
    pass


class PGNParseError(FormatError):
    pass


class ReconstructionError(ChessError):
    """A recorded game does not replay consistently."""
