"""Tenant isolation: ownership resolution, verification, scoping and guards.

Tenants share one schema. Isolation comes from ownership columns:

    User ─owns─▶ Farm ─▶ Field ─▶ Crop / Livestock
                      └▶ Parcel

plus a direct `owner_id` on harvests, inventory items and finance records.
"""
