"""
Normalized request for a single AWS operation.
"""
from dataclasses import dataclass, field
from typing import Any, Dict

from utils.serialization import to_json_bytes


@dataclass
class Request:
    """
    One attempted operation.

    Attributes:
        operation: "<service>.<verb>", e.g. "sqs.send_message"
        path: Service resource identifier (queue URL, topic ARN, function
            name, "bucket/key", parameter name); empty when not needed
        body: Raw payload bytes
        headers: Service-namespaced attributes, e.g. "sqs.delay_seconds"
        query_params: Filter and pagination parameters
        timeout: Per-request timeout in seconds; 0 uses the client default
        method: HTTP-like verb, only meaningful for inbound events
    """

    operation: str
    path: str = ""
    body: bytes = b""
    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, str] = field(default_factory=dict)
    timeout: float = 0
    method: str = ""

    def with_json_body(self, value: Any) -> "Request":
        """
        Set the body by serializing a value to JSON.

        Raises:
            ValueError: If the value cannot be serialized
        """
        try:
            self.body = to_json_bytes(value)
        except (TypeError, ValueError) as e:
            raise ValueError(f"failed to marshal JSON body: {str(e)}") from e
        return self

    def with_body(self, body: bytes) -> "Request":
        """Set the body from raw bytes."""
        self.body = body
        return self
