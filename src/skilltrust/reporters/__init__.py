"""Output formats for trust reports."""
