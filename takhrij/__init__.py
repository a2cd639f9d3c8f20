"""
Takhrij backend: hadith lookup across the nine collections with labelled
AI fallback, structured commentary and narrator biographies.
"""

__version__ = "1.0.0"
