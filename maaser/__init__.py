"""
Maaser Tracker - Source Package

A personal finance engine for tracking a proportional charitable
obligation (maaser / tithe) against irregular income and donations.

DESIGN PRINCIPLES:
1. Raw records are the only source of truth
2. Every snapshot is recomputed on read, never stored
3. The core is pure: no clock, no I/O, no hidden state
4. Enum and currency strings are validated once, at the boundary
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Maaser Tracker Team"
