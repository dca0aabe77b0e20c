"""Sublease: lease subdomains of verified domains with automatic DNS provisioning."""

__version__ = "0.1.0"
