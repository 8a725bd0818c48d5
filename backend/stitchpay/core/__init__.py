"""
Core configuration, security and error handling.
"""
