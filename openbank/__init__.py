"""
OpenBank Core

Balance-mutation and transaction-recording core of the OpenBank demo bank:
four named sub-accounts per customer, fixed-point money, atomic
deposit/withdrawal/transfer with paired transaction records.
"""

__version__ = "1.0.0"
