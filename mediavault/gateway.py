# mediavault/gateway.py
"""
Named-call entry point for hosts.

The gateway turns a (caller, operation, arguments) triple into a registry
call and wraps the outcome in a tagged result:

    {"ok": True, "value": ...}
    {"ok": False, "error": {"kind": ..., "code": ..., "message": ...}}

Signed envelopes go through submit(), which authenticates the caller
before dispatching.
"""

import inspect
import logging
from typing import Any, Dict

from .errors import MalformedCall, RegistryError, UnauthorizedAccess
from .identity import CallEnvelope, verify_call
from .registry import MediaRegistry

logger = logging.getLogger(__name__)

# operation name -> whether the registry method takes the caller
OPERATIONS: Dict[str, bool] = {
    "register": True,
    "modify": True,
    "transfer_ownership": True,
    "delete": True,
    "set_permission": True,
    "retrieve": True,
    "vault_statistics": False,
    "owner_of": False,
    "check_permissions": False,
}


def _to_plain(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    return value


def ok(value: Any) -> Dict[str, Any]:
    return {"ok": True, "value": _to_plain(value)}


def failure(error: RegistryError) -> Dict[str, Any]:
    return {"ok": False, "error": error.to_dict()}


class CallGateway:
    """
    Dispatches named calls onto a MediaRegistry.

    Used nonces live on the registry, so they are saved with its snapshot
    and shared by every gateway wrapping it.
    """

    def __init__(self, registry: MediaRegistry):
        self.registry = registry

    def _bind(self, caller: str, operation: str, arguments: Any) -> inspect.BoundArguments:
        """Match arguments to the operation's signature without running it."""
        if operation not in OPERATIONS:
            raise ValueError(f"Unknown operation: {operation}")
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise MalformedCall(f"{operation}: arguments must be a mapping")

        method = getattr(self.registry, operation)
        try:
            if OPERATIONS[operation]:
                bound = inspect.signature(method).bind(caller, **arguments)
            else:
                bound = inspect.signature(method).bind(**arguments)
        except TypeError as e:
            raise MalformedCall(f"{operation}: {e}") from e

        content_id = bound.arguments.get("content_id")
        if "content_id" in bound.arguments and (
                isinstance(content_id, bool) or not isinstance(content_id, int)):
            raise MalformedCall(f"{operation}: content_id must be an integer")
        return bound

    def _dispatch(self, operation: str, bound: inspect.BoundArguments) -> Dict[str, Any]:
        method = getattr(self.registry, operation)
        try:
            value = method(*bound.args, **bound.kwargs)
        except RegistryError as e:
            return failure(e)
        return ok(value)

    def call(self, caller: str, operation: str, arguments: Dict[str, Any] = None) -> Dict[str, Any]:
        """
        Run one operation as the given caller.

        Raises:
            ValueError: operation is not a registry operation
        """
        try:
            bound = self._bind(caller, operation, arguments)
        except MalformedCall as e:
            return failure(e)
        return self._dispatch(operation, bound)

    def submit(self, envelope: CallEnvelope) -> Dict[str, Any]:
        """
        Authenticate a signed envelope, then dispatch it as its signer.

        A nonce is spent only once the call is authentic, unexpired and its
        arguments fit the operation.
        """
        if envelope.operation not in OPERATIONS:
            raise ValueError(f"Unknown operation: {envelope.operation}")

        principal = verify_call(envelope)
        if principal is None:
            logger.warning(f"Rejected {envelope.operation}: bad signature")
            return failure(UnauthorizedAccess("signature verification failed"))

        valid_until = envelope.valid_until
        if valid_until is not None:
            if isinstance(valid_until, bool) or not isinstance(valid_until, int):
                return failure(MalformedCall("valid_until must be a block height"))
            if self.registry.clock.now() > valid_until:
                logger.warning(f"Rejected {envelope.operation} from {principal}: expired")
                return failure(UnauthorizedAccess(f"envelope expired at height {valid_until}"))

        try:
            bound = self._bind(principal, envelope.operation, envelope.arguments)
        except MalformedCall as e:
            return failure(e)

        if not self.registry.consume_nonce(envelope.nonce, valid_until):
            logger.warning(f"Rejected {envelope.operation} from {principal}: replayed nonce")
            return failure(UnauthorizedAccess("nonce already used"))

        return self._dispatch(envelope.operation, bound)
