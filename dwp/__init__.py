"""Diceware passphrase numbers from a cryptographically secure entropy source."""

__version__ = "1.0.0"
