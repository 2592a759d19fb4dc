"""
Shared helpers: permissions and logging setup.
"""
