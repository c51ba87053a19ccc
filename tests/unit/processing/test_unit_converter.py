# tests/unit/processing/test_unit_converter.py
"""
Unit tests for raw <-> EGU conversion.
"""

import pytest

from mixmaster.processing.unit_converter import UnitConverter


class TestUnitConverter:
    """Test linear scaling."""

    def test_convert_to_egu(self):
        """Test EGU = A * raw + B."""
        assert UnitConverter.convert_to_egu(0.5, 10.0, 100) == pytest.approx(60.0)

    def test_convert_to_raw(self):
        """Test raw = (EGU - B) / A."""
        assert UnitConverter.convert_to_raw(0.5, 10.0, 60.0) == 100

    def test_identity_scaling(self):
        """Test A=1, B=0 leaves values unchanged."""
        assert UnitConverter.convert_to_raw(1.0, 0.0, 370.0) == 370
        assert UnitConverter.convert_to_egu(1.0, 0.0, 370) == 370.0

    def test_truncates_toward_zero(self):
        """Test fractional raw values are truncated, not rounded."""
        assert UnitConverter.convert_to_raw(1.0, 0.0, 12.9) == 12

    def test_narrows_to_16_bits(self):
        """Test out-of-range results wrap into 16 bits."""
        assert UnitConverter.convert_to_raw(1.0, 0.0, 65536.0) == 0
        assert UnitConverter.convert_to_raw(1.0, 0.0, -1.0) == 0xFFFF

    @pytest.mark.parametrize("raw", [0, 1, 500, 4095, 65535])
    def test_round_trip(self, raw):
        """Test raw -> EGU -> raw is stable for a representable scaling."""
        egu = UnitConverter.convert_to_egu(0.25, -20.0, raw)

        assert UnitConverter.convert_to_raw(0.25, -20.0, egu) == raw
