"""
nanoedit/middleware/__init__.py
"""
