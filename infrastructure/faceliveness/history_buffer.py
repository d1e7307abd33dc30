"""
Sliding history buffers for per-frame signals.
"""

from collections import deque
from typing import Deque, Generic, List, TypeVar

from .signal_extractor import HeadOffset, SignalSample

T = TypeVar('T')


class HistoryBuffer(Generic[T]):
    """Bounded FIFO time series; the oldest values are evicted once capacity is exceeded."""

    def __init__(self, capacity: int = 120):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self._items: Deque[T] = deque(maxlen=capacity)

    def push(self, value: T) -> None:
        self._items.append(value)

    def window(self, k: int) -> List[T]:
        """Last k values, or fewer when not enough have been pushed."""
        if k <= 0:
            return []
        items = list(self._items)
        return items[-k:]

    def clear(self) -> None:
        self._items.clear()

    def to_list(self) -> List[T]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"HistoryBuffer(capacity={self.capacity}, size={len(self._items)})"


class SignalHistory:
    """The three signal buffers owned by one engine session."""

    def __init__(self, capacity: int = 120):
        self.ear: HistoryBuffer[float] = HistoryBuffer(capacity)
        self.mouth_ratio: HistoryBuffer[float] = HistoryBuffer(capacity)
        self.head_offset: HistoryBuffer[HeadOffset] = HistoryBuffer(capacity)

    def push(self, sample: SignalSample) -> None:
        self.ear.push(sample.ear)
        self.mouth_ratio.push(sample.mouth_ratio)
        self.head_offset.push(sample.head_offset)

    def clear(self) -> None:
        self.ear.clear()
        self.mouth_ratio.clear()
        self.head_offset.clear()

    def __len__(self) -> int:
        return len(self.ear)
