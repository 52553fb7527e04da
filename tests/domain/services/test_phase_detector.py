"""Tests for phase boundary detection."""

import math

import pytest

from phasechat.domain.services.phase_detector import (
    PHASE_SIZE,
    current_phase_number,
    is_phase_end,
    phase_message_range,
)


class TestIsPhaseEnd:
    """Tests for is_phase_end."""

    @pytest.mark.parametrize("count", [9, 19, 29, 99, 1009])
    def test_boundaries(self, count: int) -> None:
        assert is_phase_end(count) is True

    @pytest.mark.parametrize("count", [0, 1, 8, 10, 11, 18, 20, 21])
    def test_non_boundaries(self, count: int) -> None:
        assert is_phase_end(count) is False

    def test_first_message_is_not_a_boundary(self) -> None:
        """A brand-new conversation has length 1 after the first user append."""
        assert is_phase_end(1) is False

    def test_matches_modulo_rule(self) -> None:
        for count in range(0, 500):
            assert is_phase_end(count) == (count % 10 == 9)


class TestCurrentPhaseNumber:
    """Tests for current_phase_number."""

    @pytest.mark.parametrize(
        ("count", "expected"),
        [(1, 1), (9, 1), (10, 1), (11, 2), (19, 2), (20, 2), (21, 3)],
    )
    def test_values(self, count: int, expected: int) -> None:
        assert current_phase_number(count) == expected

    def test_matches_ceil_rule(self) -> None:
        for count in range(1, 500):
            assert current_phase_number(count) == math.ceil(count / 10)

    def test_boundary_k_requests_phase_k(self) -> None:
        """Phase k is requested exactly at length 10k - 1."""
        for k in range(1, 50):
            count = 10 * k - 1
            assert is_phase_end(count)
            assert current_phase_number(count) == k


class TestPhaseMessageRange:
    """Tests for phase_message_range."""

    def test_first_phase(self) -> None:
        assert phase_message_range(1) == range(0, 10)

    def test_third_phase(self) -> None:
        assert phase_message_range(3) == range(20, 30)

    def test_size(self) -> None:
        assert len(phase_message_range(7)) == PHASE_SIZE

    def test_invalid_phase_number(self) -> None:
        with pytest.raises(ValueError):
            phase_message_range(0)
