"""Processing: unit conversion, alarms, command dispatch and tick workers."""
