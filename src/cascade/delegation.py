"""
Attribute delegation helpers.

``Defaults`` is the long-lived, application-wide object that per-request
objects fall back to. ``Delegating`` is the base for those per-request
objects: entries on the defaults win over the class's methods (not its
properties), and plain functions found there are bound to the instance.
Assigning on an instance shadows the default for that instance only.

``Delegator`` generates forwarding members, so ``ctx.body`` can read and
write ``ctx.response.body``.
"""

import inspect
import types
from typing import Any, Optional


class Defaults(types.SimpleNamespace):
    """Application-level default attributes for one kind of object."""


def _bind(value: Any, obj: Any) -> Any:
    if inspect.isfunction(value):
        return types.MethodType(value, obj)
    return value


class Delegating:
    """
    Per-request object that falls back to a ``Defaults`` instance.

    Lookup order for public names:

    1. properties defined on the class (their setters own instance state)
    2. the instance ``__dict__``
    3. the defaults, so ``app.context.onerror = fn`` replaces the built-in
       method for every request
    4. everything else on the class
    """

    def __init__(self, defaults: Optional[Defaults] = None):
        object.__setattr__(self, "_defaults", defaults if defaults is not None else Defaults())

    def __getattribute__(self, name: str) -> Any:
        if name.startswith("_"):
            return object.__getattribute__(self, name)
        defaults = vars(object.__getattribute__(self, "_defaults"))
        if name in defaults and name not in object.__getattribute__(self, "__dict__"):
            if not inspect.isdatadescriptor(getattr(type(self), name, None)):
                return _bind(defaults[name], self)
        return object.__getattribute__(self, name)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("__") or name == "_defaults":
            raise AttributeError(name)
        try:
            value = getattr(self._defaults, name)
        except AttributeError:
            raise AttributeError(
                f"{type(self).__name__!r} object has no attribute {name!r}"
            ) from None
        return _bind(value, self)


class Delegator:
    """Install members on ``proto`` that forward to ``getattr(self, target)``."""

    def __init__(self, proto: type, target: str):
        self.proto = proto
        self.target = target

    def method(self, name: str) -> "Delegator":
        target = self.target

        def forward(obj, *args, **kwargs):
            return getattr(getattr(obj, target), name)(*args, **kwargs)

        forward.__name__ = name
        forward.__qualname__ = f"{self.proto.__name__}.{name}"
        setattr(self.proto, name, forward)
        return self

    def access(self, name: str) -> "Delegator":
        target = self.target

        def fget(obj):
            return getattr(getattr(obj, target), name)

        def fset(obj, value):
            setattr(getattr(obj, target), name, value)

        setattr(self.proto, name, property(fget, fset, doc=f"Delegates to {target}.{name}"))
        return self

    def getter(self, name: str) -> "Delegator":
        target = self.target

        def fget(obj):
            return getattr(getattr(obj, target), name)

        setattr(self.proto, name, property(fget, doc=f"Delegates to {target}.{name}"))
        return self
