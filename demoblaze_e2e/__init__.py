"""
Support package for the Demoblaze end-to-end suite.

Holds the pieces of the suite that do not drive a browser themselves:
price and order parsing, static test-data loading, site reachability
checks, authentication-state snapshots, the run summary reporter and the
profile launcher.
"""

__version__ = "1.0.0"
