"""
Cashbook - Source Package

A personal finance tracker: income/expense transactions against
categories, statistics, and bulk import of bank-statement images
parsed by a vision-capable language model.

DESIGN PRINCIPLES:
1. AI proposes → Human confirms → System persists
2. Every record is owned by exactly one user
3. Fail visibly: every error reaches the caller as a readable message
4. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Cashbook Team"
