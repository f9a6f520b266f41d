"""
querypilot - resilient natural-language to SQL execution
"""

__version__ = "0.1.0"
