"""Players and their clocks."""

from engine.core.errors import ConstructionError
from engine.core.types import Color


class Player:
    """A participant whose moves are supplied from outside (a human).

    Computer opponents subclass this and compute their own moves.
    """

    def __init__(self, name: str, color: Color, remaining_ms: int):
        if not name:
            raise ConstructionError("player name must not be empty")
        if not isinstance(color, Color):
            raise ConstructionError("player colour is required")
        if remaining_ms < 0:
            raise ConstructionError("remaining time must not be negative")
        self.name = name
        self.color = color
        self._remaining_ms = remaining_ms

    @property
    def remaining_ms(self) -> int:
        return self._remaining_ms

    @remaining_ms.setter
    def remaining_ms(self, value: int):
        if value < 0:
            raise ValueError("remaining time must not be negative")
        self._remaining_ms = value

    def reduce_remaining_time(self, ms: int) -> int:
        if self._remaining_ms - ms < 0:
            raise ValueError("remaining time would become negative")
        self._remaining_ms -= ms
        return self._remaining_ms

    @property
    def is_human(self) -> bool:
        return True

    def __repr__(self):
        return f"{type(self).__name__}({self.name!r}, {self.color.name}, {self._remaining_ms}ms)"
