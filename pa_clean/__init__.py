"""Protected-area cleaning pipeline.

Cleans heterogeneous conservation-area polygon and point records so that
downstream area statistics (coverage, overlap, categorical breakdowns) are
accurate and comparable: attribute normalization, point expansion, geometry
repair, overlap erasure, dissolve, and equal-area recomputation.
"""

__version__ = "0.1.0"
