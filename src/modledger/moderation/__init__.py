"""
Sanction engine and its pure helpers.

- **sanction_validator.py**: Checks a punish request and reports every
  violation at once.
- **expiry_evaluator.py**: Decides whether a ban, mute or timeout is still in
  force at a given instant.
- **sanction_engine.py**: Orchestrates validation, enforcement, persistence and
  reversal.
- **errors.py**: ValidationError, ConflictError, NotFoundError and
  InvalidStateError.
"""
