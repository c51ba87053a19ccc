"""Tick generation for the master station workers."""

from mixmaster.time.tick_clock import TickClock, TimeMode

__all__ = ["TickClock", "TimeMode"]
