"""
Notetaker Hub - meeting notetaker scheduling, webhook ingestion and AI processing.
"""

__version__ = "1.0.0"
