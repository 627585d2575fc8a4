"""Pipeline orchestration.

Runs the cleaning stages end to end over a batch:
1. Normalize → expand points → reproject → repair
2. Resolve overlaps (or dissolve) → recompute area
3. Partitioned runs: fan-out per realm or region, fan-in in key order
"""
