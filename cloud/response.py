"""
Normalized response for a single AWS operation.
"""
import json
from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass
class Response:
    """
    One successful outcome.

    status_code follows HTTP conventions (200 ok, 201 created, 204 deleted)
    and is a classification, not a transport status. Service result ids
    appear in headers as strings and in metadata with their native types.
    """

    status_code: int = 200
    body: bytes = b""
    headers: Dict[str, str] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def unmarshal_body(self) -> Any:
        """
        Parse the body as JSON.

        Raises:
            ValueError: If the body is empty or not valid JSON
        """
        if not self.body:
            raise ValueError("response body is empty")
        return json.loads(self.body)

    def body_string(self) -> str:
        return self.body.decode('utf-8')
