from __future__ import annotations

import enum
from dataclasses import dataclass


class MaskValue(enum.IntEnum):
    """Pixel values of the outpaint mask.

    White marks pixels the model may synthesize, black marks pixels it must
    keep. Swapping them inverts generation and preservation.
    """

    GENERATE = 255
    PRESERVE = 0


@dataclass(frozen=True, slots=True)
class CanvasPlan:
    width: int
    height: int
    aspect_ratio: float

    @property
    def size(self) -> tuple[int, int]:
        return (self.width, self.height)


@dataclass(frozen=True, slots=True)
class Offset:
    x: int
    y: int


@dataclass(slots=True)
class RoundResult:
    index: int
    input_path: str
    output_path: str
    input_size: tuple[int, int]
    plan: CanvasPlan
    offset: Offset
    filled_size: tuple[int, int]
    output_size: tuple[int, int]
