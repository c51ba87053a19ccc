# tests/unit/config/test_config_item.py
"""
Unit tests for parsing configuration rows into ConfigItem.
"""

import pytest

from mixmaster.config.config_item import ConfigItem
from mixmaster.errors import ConfigParseError
from mixmaster.state.points import PointType


def row(text):
    return ConfigItem.from_tokens(text.split())


# ================================================================
# REGISTRY TYPE TESTS
# ================================================================
class TestRegistryType:
    """Test registry type token mapping."""

    @pytest.mark.parametrize(
        "token,expected",
        [
            ("DO_REG", PointType.DIGITAL_OUTPUT),
            ("DI_REG", PointType.DIGITAL_INPUT),
            ("IN_REG", PointType.ANALOG_INPUT),
            ("HR_INT", PointType.ANALOG_OUTPUT),
        ],
    )
    def test_known_tokens(self, token, expected):
        """Test each known token maps to its registry type."""
        item = row(f"{token} 1 100 0 0 1 0 X @Point 1")

        assert item.registry_type == expected

    def test_unknown_token_is_hr_long(self):
        """Test an unrecognised token falls back to HR_LONG."""
        item = row("HR_LONG 2 100 0 0 1 0 X @Wide 1")

        assert item.registry_type == PointType.HR_LONG
        assert item.scale_factor == 1.0
        assert item.abnormal_value == 0


# ================================================================
# COMMON FIELD TESTS
# ================================================================
class TestCommonFields:
    """Test the mandatory leading tokens."""

    def test_fields_in_order(self):
        """Test the ten mandatory fields are read positionally."""
        item = row("DO_REG 4 4000 2 5 9 1 DO @Valves 3")

        assert item.number_of_registers == 4
        assert item.start_address == 4000
        assert item.decimal_separator_place == 2
        assert item.min_value == 5
        assert item.max_value == 9
        assert item.default_value == 1
        assert item.processing_type == "DO"
        assert item.description == "Valves"
        assert item.acquisition_interval == 3

    def test_hash_interval_means_one(self):
        """Test '#' as acquisition interval defaults to 1."""
        item = row("DO_REG 1 3000 0 0 1 0 DO @Start #")

        assert item.acquisition_interval == 1

    def test_too_few_tokens(self):
        """Test a short row is rejected."""
        with pytest.raises(ConfigParseError):
            row("DO_REG 1 3000 0 0 1 0 DO @Start")

    def test_malformed_number_becomes_zero(self, caplog):
        """Test an unparsable numeric token is logged and replaced with 0."""
        item = row("DO_REG 1 abc 0 0 1 0 DO @Start 1")

        assert item.start_address == 0
        assert "start_address" in caplog.text

    def test_values_truncated_to_16_bits(self):
        """Test negative and oversized values wrap to unsigned 16-bit."""
        item = row("HR_INT 1 70000 0 -1 0 0 AO @Wrapped 1")

        assert item.start_address == 70000 & 0xFFFF
        assert item.min_value == 65535


# ================================================================
# ANALOG FIELD TESTS
# ================================================================
class TestAnalogFields:
    """Test the analog tail of a row."""

    def test_full_analog_row(self):
        """Test scale, deviation, EGU range and limits."""
        item = row("HR_INT 1 1000 0 0 400 0 AO @Contents 1 0.5 10 0 400 380 20")

        assert item.scale_factor == 0.5
        assert item.deviation == 10
        assert item.egu_min == 0
        assert item.egu_max == 400
        assert item.high_limit == 380
        assert item.low_limit == 20

    def test_short_analog_row_uses_defaults(self):
        """Test an analog row without its tail gets default limits."""
        item = row("IN_REG 1 1000 0 0 400 0 AI @Level 1")

        assert item.scale_factor == 1.0
        assert item.deviation == 0.0
        assert item.egu_max == 65535.0
        assert item.high_limit == 60000.0
        assert item.low_limit == 1000.0

    def test_zero_scale_replaced(self):
        """Test a zero scale factor becomes 1.0."""
        item = row("HR_INT 1 1000 0 0 400 0 AO @Contents 1 0 0 0 400 380 0")

        assert item.scale_factor == 1.0


# ================================================================
# DIGITAL FIELD TESTS
# ================================================================
class TestDigitalFields:
    """Test the digital tail of a row."""

    def test_explicit_abnormal_value(self):
        """Test the abnormal value is read when present."""
        item = row("DI_REG 1 2000 0 0 1 0 DI @Door 1 0")

        assert item.abnormal_value == 0

    def test_default_abnormal_value(self):
        """Test digital rows without a tail treat ON as abnormal."""
        item = row("DI_REG 1 2000 0 0 1 0 DI @Door 1")

        assert item.abnormal_value == 1


# ================================================================
# QUERY TESTS
# ================================================================
class TestItemQueries:
    """Test range queries and identity semantics."""

    def test_contains(self):
        """Test the address range is half-open."""
        item = row("DO_REG 4 4000 0 0 1 0 DO @Valves 1")

        assert item.contains(4000)
        assert item.contains(4003)
        assert not item.contains(4004)
        assert not item.contains(3999)
        assert list(item.addresses()) == [4000, 4001, 4002, 4003]

    def test_identity_equality(self):
        """Test identical rows yield distinct, hashable items."""
        first = row("DO_REG 1 3000 0 0 1 0 DO @Start 1")
        second = row("DO_REG 1 3000 0 0 1 0 DO @Start 1")

        assert first != second
        assert len({first, second}) == 2

    def test_immutable(self):
        """Test items cannot be modified after loading."""
        item = row("DO_REG 1 3000 0 0 1 0 DO @Start 1")

        with pytest.raises(AttributeError):
            item.start_address = 1
