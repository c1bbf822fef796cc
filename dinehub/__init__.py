"""
                DineHub Restaurant Platform

Multi-tenant restaurant ordering and management backend: customer
ordering, point of sale, kitchen tracking, loyalty, support and HR.
"""

__version__ = "1.0.0"
