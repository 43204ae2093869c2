"""
aligndem test suite

Structure:
- unit/: components in isolation (types, codec, stores, caches, dedup, RANSAC, geodetic, config, CLI)
- integration/: synthetic GeoTIFF pairs through real detection, matching and the CLI
"""
