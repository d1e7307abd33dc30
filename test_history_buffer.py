#!/usr/bin/env python3
"""
Tests for the sliding history buffers.
"""

import os
import sys

import pytest

# Add the infrastructure directory to the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'infrastructure'))

from faceliveness.history_buffer import HistoryBuffer, SignalHistory
from faceliveness.signal_extractor import HeadOffset, SignalSample


def test_capacity_five_keeps_last_five():
    buffer = HistoryBuffer(capacity=5)
    for value in range(1, 9):
        buffer.push(value)

    assert buffer.to_list() == [4, 5, 6, 7, 8]
    assert len(buffer) == 5


@pytest.mark.parametrize("capacity,pushes", [(1, 3), (3, 10), (120, 500)])
def test_length_never_exceeds_capacity(capacity, pushes):
    buffer = HistoryBuffer(capacity=capacity)
    for value in range(pushes):
        buffer.push(value)
        assert len(buffer) <= capacity

    assert len(buffer) == capacity
    assert buffer.to_list() == list(range(pushes - capacity, pushes))


def test_window_returns_most_recent_values():
    buffer = HistoryBuffer(capacity=10)
    for value in range(6):
        buffer.push(value)

    assert buffer.window(3) == [3, 4, 5]
    assert buffer.window(12) == [0, 1, 2, 3, 4, 5]
    assert buffer.window(0) == []


def test_window_on_empty_buffer_is_empty():
    assert HistoryBuffer(capacity=4).window(12) == []


def test_invalid_capacity_rejected():
    with pytest.raises(ValueError):
        HistoryBuffer(capacity=0)


def test_signal_history_push_and_clear():
    history = SignalHistory(capacity=3)
    for i in range(5):
        history.push(SignalSample(ear=0.1 * i, mouth_ratio=float(i), head_offset=HeadOffset(i, -i)))

    assert len(history) == 3
    assert history.mouth_ratio.to_list() == [2.0, 3.0, 4.0]
    assert history.head_offset.window(1) == [HeadOffset(4, -4)]

    history.clear()
    assert len(history) == 0
    assert len(history.head_offset) == 0


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v"]))
