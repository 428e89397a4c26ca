"""Identity layer for the marketplace: signup, OTP verification and sessions."""

__version__ = "0.1.0"
