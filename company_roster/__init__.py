"""
Company Roster Service

Multi-tenant companies with member rosters and role-based access control.
Owners and Admins manage the roster; every company keeps at least one Owner.
"""

__version__ = "1.0.0"
