"""Record and envelope models."""
