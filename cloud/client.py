"""
Client capability and middleware composition.
"""
from typing import Callable, Iterable, Optional, Protocol

from .context import Context
from .request import Request
from .response import Response


class Client(Protocol):
    """
    Anything that executes one normalized operation.

    Implementations return a Response on success and raise CloudError on
    failure; exactly one of the two happens per call.
    """

    def do(self, request: Optional[Request], ctx: Optional[Context] = None) -> Response:
        ...


Middleware = Callable[[Client], Client]


def apply_middlewares(client: Client, middlewares: Iterable[Middleware]) -> Client:
    """
    Wrap a client with middlewares in list order.

    The last middleware in the list becomes the outermost layer, so it is the
    first one a caller reaches.
    """
    for middleware in middlewares:
        client = middleware(client)
    return client
