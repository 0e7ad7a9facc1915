# Supabase tables: groups, group_members
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

groups:
- id: uuid (primary key)
- name: text (unique, not null)
- description: text (not null)
- type: text (not null) - values: Category-Based, Location-Based
- category: text (nullable) - Category-Based groups only
- location_name: text (nullable) - Location-Based groups only
- latitude: double precision (nullable)
- longitude: double precision (nullable)
- cover_image_url: text (nullable)
- user_id: uuid (foreign key to user_profiles.id, not null) - creator
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)

group_members:
- id: uuid (primary key)
- group_id: uuid (foreign key to groups.id, not null, on delete cascade)
- user_id: uuid (foreign key to user_profiles.id, not null)
- role: text (not null, default: 'member') - values: owner, member
- created_at: timestamp (default: now())
- unique constraint on (group_id, user_id)

Membership changes are always single-row inserts/deletes against
group_members, never a rewrite of the whole member list. The creator's row is
written with role 'owner' at creation and cannot be removed by toggling.
"""
