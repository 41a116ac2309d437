"""authcore - verification codes, rate limits, provisioning and sessions."""

__version__ = "0.1.0"
