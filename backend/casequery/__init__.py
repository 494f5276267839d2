"""
Free-text analytic questions over arbitration case records
"""
__version__ = "0.1.0"
