"""
notes-rag: retrieval engine for a personal notes application.
"""

__version__ = "1.0.0"
