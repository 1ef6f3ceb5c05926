"""
Configuration management for modledger.

- **app_configuration.py**: YAML configuration loader (database path, API
  host/port, reversal reason, per-guild mute roles). Falls back to defaults on
  a missing or malformed file.
"""
