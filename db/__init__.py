from .base import Base
from .model import CryptoPayment

__all__ = ["Base", "CryptoPayment"]
