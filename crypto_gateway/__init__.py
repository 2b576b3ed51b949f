"""Crypto payment gateway service: BTCPay Server and NowPayments behind one API."""

__version__ = "0.1.0"
