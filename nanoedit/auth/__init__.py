"""
nanoedit/auth/__init__.py
"""
