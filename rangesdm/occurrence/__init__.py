"""
Occurrence data processing: cleaning presences and sampling background points.
"""

from .cleaning import clean_occurrences, to_point_table
from .mask import ReferenceMask
from .sampling import sample_background_points

__all__ = [
    'clean_occurrences',
    'to_point_table',
    'ReferenceMask',
    'sample_background_points',
]
