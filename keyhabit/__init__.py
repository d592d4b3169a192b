"""keyhabit — break inefficient keyboard habits.

Throttles repeated use of movement keys and points out known inefficient
key sequences as you type.
"""

__version__ = "1.0.0"
