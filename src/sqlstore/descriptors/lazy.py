"""Lazy loading descriptors.

This module provides a descriptor for values that are expensive to compute
and must be computed at most once per instance, even when several threads
touch the attribute for the first time together.
"""

import threading
from typing import Optional, Any, Callable, Generic, TypeVar

T = TypeVar('T')

_MISSING = object()


class LazyField(Generic[T]):
    """Descriptor for lazy-loaded, once-computed values.

    The first access runs the loader under a lock and stores the result in
    the instance ``__dict__``; every later access returns the stored value
    without calling the loader again.

    Attributes:
        loader: Function to compute the value when first accessed
        attr_name: The attribute name this descriptor is assigned to

    Example:
        >>> class Probe:
        >>>     @LazyField
        >>>     def is_cluster(self):
        >>>         # Runs once per instance
        >>>         return run_version_query()
        >>>
        >>> probe = Probe()
        >>> probe.is_cluster  # Computed here
        >>> probe.is_cluster  # Retrieved from cache
    """

    def __init__(self, loader: Optional[Callable[[Any], T]] = None):
        """Initialize the lazy field descriptor.

        Args:
            loader: Optional function to compute the value. If not provided,
                   the descriptor can be used as a decorator.
        """
        self.loader = loader
        self.attr_name: Optional[str] = getattr(loader, "__name__", None)
        self._lock = threading.RLock()

    def __set_name__(self, owner: type, name: str) -> None:
        """Store the attribute name when descriptor is attached to a class.

        Args:
            owner: The class that owns this descriptor
            name: The attribute name in the class
        """
        self.attr_name = name

    def __get__(self, obj: Optional[Any], objtype: Optional[type] = None) -> Any:
        """Get the lazy-loaded value.

        Args:
            obj: The instance, or None if accessed on class
            objtype: The type of the instance

        Returns:
            The computed/cached value, or the descriptor if accessed on class
        """
        if obj is None:
            return self  # Accessing via class

        cache = obj.__dict__
        value = cache.get(self.attr_name, _MISSING)
        if value is not _MISSING:
            return value

        with self._lock:
            # Another thread may have finished the computation while we waited
            value = cache.get(self.attr_name, _MISSING)
            if value is _MISSING:
                if self.loader is None:
                    raise ValueError(
                        f"No loader function defined for LazyField '{self.attr_name}'"
                    )
                value = self.loader(obj)
                cache[self.attr_name] = value
        return value

    def __call__(self, loader: Callable[[Any], T]) -> 'LazyField[T]':
        """Allow LazyField to be used as a decorator.

        Args:
            loader: The function to use for loading the value

        Returns:
            Self with the loader set
        """
        self.loader = loader
        if self.attr_name is None:
            self.attr_name = loader.__name__
        return self

    def is_loaded(self, obj: Any) -> bool:
        """Whether the value has already been computed for ``obj``."""
        return self.attr_name in obj.__dict__

    def invalidate(self, obj: Any) -> None:
        """Drop the cached value for a specific instance.

        Args:
            obj: The instance whose cached value should be invalidated
        """
        with self._lock:
            obj.__dict__.pop(self.attr_name, None)
