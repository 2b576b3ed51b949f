"""Exceptions raised by the gateway HTTP plumbing."""

from __future__ import annotations

from typing import Any, Optional


class GatewayError(Exception):
    """A payment gateway answered with an error or could not be reached."""

    def __init__(
        self,
        message: str,
        *,
        gateway: Optional[str] = None,
        status: Optional[int] = None,
        payload: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.gateway = gateway
        self.status = status
        self.payload = payload

    @classmethod
    def from_response(cls, gateway: str, status: int, payload: Any) -> "GatewayError":
        message = None
        if isinstance(payload, dict):
            message = payload.get("message")
        if not message:
            message = f"HTTP {status}"
        return cls(str(message), gateway=gateway, status=status, payload=payload)

    def __str__(self) -> str:
        return self.message
