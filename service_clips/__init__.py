"""
Clips service.
"""
