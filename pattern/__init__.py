"""Reference byte pattern for stream-testkit.

- generator: PatternGenerator, Pattern, MismatchError
"""

from pattern.generator import MismatchError, Pattern, PatternGenerator

__all__ = [
    "MismatchError",
    "Pattern",
    "PatternGenerator",
]
