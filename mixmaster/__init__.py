"""
mixmaster - Modbus TCP master station with mixing-vessel automation.

Polls remote coils and registers, converts raw values to engineering
units, evaluates alarms and drives a simulated mixing vessel through the
same protocol path an external operator would use.
"""

__version__ = "0.1.0"
