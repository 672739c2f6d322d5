"""
novelgen - asynchronous job orchestration for AI novel generation.

Outline first, then chapter-by-chapter drafting, driven by a persistent
job queue that survives restarts.
"""

__version__ = "1.0.0"
