"""
nanoedit/credits/__init__.py
"""
