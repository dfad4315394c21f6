"""
KuloSplit - Source Package

Splits a restaurant or shop receipt among friends: a photo of the
receipt is analyzed into items, each item is assigned to one person,
and tax and service fee are shared in proportion to what each person ate.

DESIGN PRINCIPLES:
1. AI suggests -> Human edits -> System calculates
2. Fail visibly: every rejected action explains itself
3. Bills are immutable values; edits produce new bills
4. Saved bills keep the shares computed at save time
5. Storage and analyzer are swappable
"""

__version__ = "1.0.0"
__author__ = "KuloSplit Team"
