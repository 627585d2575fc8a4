"""Cleaning stages.

Each activity performs a single unit of work over a batch of records:
- normalize_attributes: Sentinel codes, status allow-list, exclusions
- expand_points: Circles sized to the reported area
- repair_geometry: Reprojection, precision grid, validity, slivers
- resolve_overlaps: Per-realm erasure, first claim wins
- recompute_area: Equal-area area in km²
- dissolve: Single non-overlapping footprint
- load_features: Reading provider layers and writing results
"""
