"""Registry of locally served methods and parameter adaptation."""

from __future__ import annotations

import inspect
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from loguru import logger

from wsrpc.rpc.errors import JSONRPCErrorException
from wsrpc.rpc.types import INVALID_PARAMS, METHOD_NOT_FOUND

MethodHandler = Callable[..., Any]

_POSITIONAL_KINDS = (
    inspect.Parameter.POSITIONAL_ONLY,
    inspect.Parameter.POSITIONAL_OR_KEYWORD,
)


def _json_type_name(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int | float):
        return "number"
    if isinstance(value, str):
        return "string"
    return type(value).__name__


def declared_parameters(handler: MethodHandler) -> tuple[str, ...]:
    """Names of the positional parameters a handler declares.

    Raises:
        TypeError: the handler has no introspectable signature (most builtins).
    """
    try:
        signature = inspect.signature(handler)
    except (ValueError, TypeError) as exc:
        raise TypeError(f"Cannot read the parameters of {handler!r}; pass param_names explicitly") from exc
    return tuple(name for name, param in signature.parameters.items() if param.kind in _POSITIONAL_KINDS)


@dataclass(frozen=True)
class RegisteredMethod:
    name: str
    handler: MethodHandler
    param_names: tuple[str, ...]

    def adapt(self, method: str, params: Any) -> list[Any]:
        """Turn request params into the positional argument list for the handler.

        Raises:
            JSONRPCErrorException: INVALID_PARAMS when params do not fit.
        """
        if params is None:
            return []

        if isinstance(params, list):
            if len(params) != len(self.param_names):
                raise JSONRPCErrorException(
                    INVALID_PARAMS,
                    f"Invalid parameters. Method '{method}' expects {len(self.param_names)} parameters,"
                    f" but got {len(params)}",
                )
            return list(params)

        if isinstance(params, dict):
            # An explicit null counts as a missing argument.
            if len(params) != len(self.param_names) or any(params.get(name) is None for name in self.param_names):
                raise JSONRPCErrorException(
                    INVALID_PARAMS,
                    f"Invalid parameters. Method '{method}' expects parameters [{','.join(self.param_names)}],"
                    f" but got [{','.join(params)}]",
                )
            return [params[name] for name in self.param_names]

        raise JSONRPCErrorException(
            INVALID_PARAMS,
            f"Invalid parameters. Expected array or object, but got {_json_type_name(params)}",
        )


class MethodRegistry:
    """Case-insensitive mapping from method name to handler."""

    def __init__(self) -> None:
        self._methods: dict[str, RegisteredMethod] = {}

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._methods

    def __len__(self) -> int:
        return len(self._methods)

    def register(
        self,
        name: str,
        handler: MethodHandler,
        param_names: Iterable[str] | None = None,
    ) -> RegisteredMethod:
        """Register (or replace) the handler for `name`.

        Declared parameter names are taken from `param_names` when given,
        otherwise from the handler's signature.
        """
        names = tuple(param_names) if param_names is not None else declared_parameters(handler)
        entry = RegisteredMethod(name=name.lower(), handler=handler, param_names=names)
        if entry.name in self._methods:
            logger.debug("wsrpc.registry.replace method={}", entry.name)
        self._methods[entry.name] = entry
        return entry

    def unregister(self, name: str) -> None:
        self._methods.pop(name.lower(), None)

    def get(self, name: str) -> RegisteredMethod | None:
        return self._methods.get(name.lower())

    def resolve(self, name: str) -> RegisteredMethod:
        """Look up a method or raise METHOD_NOT_FOUND."""
        entry = self.get(name)
        if entry is None:
            raise JSONRPCErrorException(METHOD_NOT_FOUND, f"Method '{name}' was not found")
        return entry


__all__ = [
    "MethodHandler",
    "MethodRegistry",
    "RegisteredMethod",
    "declared_parameters",
]
