"""homeownership package initializer.

This package contains the CPS/SCF homeownership reconciliation pipeline.
Modules include shared recoding, the two survey harmonizers, weighted
aggregation, cross-survey reconciliation and a disk cache.  See individual
module docstrings for details.
"""
