"""
Listings module - Institutions, programs and bursaries students apply to.

Each listing carries an optional ``application_deadline`` and an
availability flag that the deadline sweep switches off once the deadline
has passed:

- institutions.is_featured
- programs.is_available
- bursaries.is_active
"""

from apply4me.modules.listings.models import Bursary, Institution, ListingType, Program

__all__ = ["Bursary", "Institution", "ListingType", "Program"]
