"""
Keyed dispatch registry for kernel dispatchers.

This module provides a small mechanism for routing work to one of several
registered implementations based on a runtime key. Each array resolves its
kernel dispatcher once, at construction, from the pair
``(device type, storage format)``.

Core idea
---------
- A registry is created by `create_dispatch_registry()`; different registries
  do not share mappings.
- Implementations register under a key with the `register` decorator:

      registry = create_dispatch_registry()

      @registry.register(DeviceType.CPU, SparseFormat.DENSE)
      class CpuDense:
          ...

  Decorating a class registers an instance of it; decorating any other
  callable or object registers it as-is.
- `resolve(device, fmt)` looks up the implementation for ``device.type``.

Important notes
---------------
- Registering a key twice raises `KeyError` unless ``replace=True``; this
  keeps accidental double registration visible.
- A missing key calls the registry's `trap_exception` hook, which is expected
  to raise a domain-specific error. Without a hook, `NotImplementedError` is
  raised.
"""

from typing import (
    Any,
    Callable,
    Dict,
    Hashable,
    NamedTuple,
    Optional,
    Tuple,
)
from typing_extensions import TypeVar
from collections import namedtuple

T = TypeVar("T")


class DispatchRegistry(NamedTuple):
    """
    Bundle of closures sharing one private implementation map.

    Attributes
    ----------
    register : Callable
        ``register(device_type, fmt, replace=False)`` returning a decorator.
    resolve : Callable
        ``resolve(device, fmt)`` returning the registered implementation.
    unregister : Callable
        ``unregister(device_type, fmt)`` removing a registration.
    keys : Callable
        ``keys()`` returning the registered keys.
    """

    register: Callable[..., Callable[[T], T]]
    resolve: Callable[[Any, Hashable], Any]
    unregister: Callable[[Hashable, Hashable], None]
    keys: Callable[[], Tuple[Any, ...]]


def create_dispatch_registry(
    trap_exception: Optional[Callable[[Any, Hashable], None]] = None,
) -> DispatchRegistry:
    """
    Create and return a new dispatch registry.

    Parameters
    ----------
    trap_exception : Optional[Callable[[device, fmt], None]]
        Called when `resolve` finds no implementation. It should raise; if it
        returns normally, `NotImplementedError` is raised afterwards.

    Returns
    -------
    DispatchRegistry
        The registry's closures.
    """

    DispatchKey = namedtuple(
        "DispatchKey",
        [
            "DeviceType",
            "Format",
        ],
    )
    """
    Tuple-like key used to identify one implementation.

    Fields
    ------
    DeviceType : Hashable
        Device type the implementation serves (e.g., ``DeviceType.CPU``).
    Format : Hashable
        Storage format the implementation owns (e.g., ``SparseFormat.CSR``).
    """

    impl_map: Dict[DispatchKey, Any] = {}
    """Mapping from (device type, format) keys to registered implementations."""

    def _check_hashable(name: str, value: Any) -> None:
        try:
            hash(value)
        except TypeError:
            raise TypeError(
                f"The argument for {repr(name)} must be hashable. Got {repr(value)}"
            ) from None

    def register(
        device_type: Hashable, fmt: Hashable, replace: bool = False
    ) -> Callable[[T], T]:
        """
        Build a decorator that registers an implementation under a key.

        Parameters
        ----------
        device_type : Hashable
            Device type served by the implementation.
        fmt : Hashable
            Storage format owned by the implementation.
        replace : bool, optional
            Allow overwriting an existing registration.

        Returns
        -------
        Callable[[T], T]
            Decorator returning its argument unchanged.

        Raises
        ------
        TypeError
            If a key part is not hashable.
        KeyError
            If the key is taken and `replace` is False.
        """
        _check_hashable("device_type", device_type)
        _check_hashable("fmt", fmt)
        key = DispatchKey(device_type, fmt)

        def decorator(impl: T) -> T:
            if key in impl_map and not replace:
                raise KeyError(f"Dispatcher already registered for {key}")
            impl_map[key] = impl() if isinstance(impl, type) else impl
            return impl

        return decorator

    def resolve(device: Any, fmt: Hashable) -> Any:
        """
        Return the implementation registered for ``(device.type, fmt)``.
        """
        key = DispatchKey(getattr(device, "type", device), fmt)
        if (impl := impl_map.get(key)) is not None:
            return impl
        if trap_exception is not None:
            trap_exception(device, fmt)
        raise NotImplementedError(f"Missing dispatcher for {key}")

    def unregister(device_type: Hashable, fmt: Hashable) -> None:
        impl_map.pop(DispatchKey(device_type, fmt), None)

    def keys() -> Tuple[Any, ...]:
        return tuple(impl_map)

    return DispatchRegistry(register, resolve, unregister, keys)
