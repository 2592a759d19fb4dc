"""
Beneficiary Hub: donation-to-school matching with admin allocation and approver review.
"""

__version__ = "0.1.0"
