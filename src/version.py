# src/version.py
__version__ = "0.4.0"
