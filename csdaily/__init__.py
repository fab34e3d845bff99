"""
Civil Services Daily - quiz feed service and client
"""

__version__ = '1.0.0'
