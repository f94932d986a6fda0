"""Small shared helpers for parsing exchange timestamps and amounts."""
