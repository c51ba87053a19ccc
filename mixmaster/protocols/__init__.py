"""Protocol layer: Modbus TCP function codecs and command executors."""
