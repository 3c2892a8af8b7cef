"""API client package for BookStack instances.

Package Structure:
- bookstack_client: REST API client bound to one instance (source or destination)
"""

from .bookstack_client import BookStackClient

__all__ = ['BookStackClient']
