"""
Middleware components for the Cascade framework.

- compose: build one cascading handler from an ordered list of units
- convert: adapt generator-style middleware to ``(ctx, next)`` units
"""

from cascade.middleware.compose import compose, Middleware, Next, ComposedHandler
from cascade.middleware.convert import convert, is_generator_middleware

__all__ = [
    'compose',
    'convert',
    'is_generator_middleware',
    'Middleware',
    'Next',
    'ComposedHandler',
]
