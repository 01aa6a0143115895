"""
nanoedit/tasks/__init__.py
"""
