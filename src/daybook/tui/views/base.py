from abc import ABC, abstractmethod
from typing import Iterable
from textual.widget import Widget
from daybook.tui.state import DayState


class View(ABC):
    name: str

    @abstractmethod
    def render(self, state: DayState) -> Iterable[Widget]: ...
