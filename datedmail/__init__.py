"""DatedMail - time-limited email aliases backed by a generated Sieve filter"""

__version__ = "1.0.0"
