"""
track-extractor: pull subtitle and audio tracks out of video containers.
"""

__version__ = "1.0.0"
