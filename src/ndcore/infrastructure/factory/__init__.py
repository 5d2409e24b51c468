from ._factory import ArrayFactory, default_factory

__all__ = [
    ArrayFactory.__name__,
    "default_factory",
]
