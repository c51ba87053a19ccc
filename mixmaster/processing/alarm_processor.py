# mixmaster/processing/alarm_processor.py
"""
Default alarm policy.

Analog points are checked against the EGU range first (a value outside
it cannot be trusted), then against the high and low limits. Digital
points alarm when they sit at the configured abnormal value.
"""

from mixmaster.config.config_item import ConfigItem
from mixmaster.state.points import AlarmType


class AlarmProcessor:
    def get_alarm_for_analog_point(self, egu_value: float, config_item: ConfigItem) -> AlarmType:
        if egu_value < config_item.egu_min or egu_value > config_item.egu_max:
            return AlarmType.REASONABILITY_FAILURE
        if egu_value > config_item.high_limit:
            return AlarmType.HIGH_ALARM
        if egu_value < config_item.low_limit:
            return AlarmType.LOW_ALARM
        return AlarmType.NO_ALARM

    def get_alarm_for_digital_point(self, raw_value: int, config_item: ConfigItem) -> AlarmType:
        if raw_value == config_item.abnormal_value:
            return AlarmType.ABNORMAL_VALUE
        return AlarmType.NO_ALARM
