"""
Studio API

Backend for the executive advisor, Bitcoin risk dashboard and fitness apps.
"""
__version__ = "0.1.0"
