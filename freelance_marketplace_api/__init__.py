"""
Top-level package for the Freelance Marketplace API.

The package provides no public exports; all functionality lives in
submodules under ``app`` and is imported with fully qualified names
such as ``freelance_marketplace_api.app.main``.
"""

__all__ = []
