# mixmaster/processing/unit_converter.py
"""
Linear conversion between raw register values and engineering units.

    EGU = A * raw + B
    raw = (EGU - B) / A
"""


class UnitConverter:
    """Raw <-> EGU scaling with scale factor A and deviation B."""

    @staticmethod
    def convert_to_egu(scale_factor: float, deviation: float, raw_value: int) -> float:
        return scale_factor * raw_value + deviation

    @staticmethod
    def convert_to_raw(scale_factor: float, deviation: float, egu_value: float) -> int:
        """Convert an EGU value back to a register value.

        Truncates toward zero and keeps the low 16 bits. Out-of-range
        results are not checked; callers clamp beforehand.
        """
        raw_value = (egu_value - deviation) / scale_factor
        return int(raw_value) & 0xFFFF
