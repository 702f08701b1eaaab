"""QuasarFlow: REST gateway for Stellar wallets and wallet ownership verification."""

__version__ = "0.1.0"
