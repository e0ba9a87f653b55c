"""State layer.

This package owns the three in-memory collections (registry, analytics,
realtime), derives merged and ranked views from them, and coordinates
remote mutations so the collections stay consistent without a re-fetch.
"""
