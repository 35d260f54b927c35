"""Run configurable tasks across many EVM wallets, with retries, delays and resumable state."""

__version__ = "0.1.0"