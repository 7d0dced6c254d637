"""
Library Management Core

A single-user library system: accounts, books and borrow records kept in
one fixed-layout binary file, with role-gated circulation and late fees.
"""

__version__ = "1.0.0"
