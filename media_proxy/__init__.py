"""
Image URL resolution and proxy service for the marketplace.

This package classifies stored image references, proxies legacy upload
URLs through a same-origin endpoint with a host allow-list, and migrates
persisted localhost upload URLs to object-storage (R2) public URLs.
"""
