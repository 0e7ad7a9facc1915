# Supabase table: messages
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in store.py

"""
Expected Supabase table structure:

messages:
- id: uuid (primary key, default: gen_random_uuid())
- seq: bigint (generated always as identity) - physical insertion order
- group_id: uuid (foreign key to groups.id, not null)
- sender_id: uuid (foreign key to user_profiles.id, not null)
- message_type: text (not null, default: 'text') - values: text, image, audio
- message_text: text (nullable) - set iff message_type = 'text'
- file_url: text (nullable) - set iff message_type in ('image', 'audio')
- sent_at: timestamp (default: now()) - assigned by the database on insert
- index on (group_id, sent_at, seq)
- check ((message_type = 'text') = (message_text is not null and file_url is null))

Rows are append-only: nothing in the application updates or deletes them.
History is read ordered by (sent_at, seq), so rows written in the same
instant keep their insertion order.
"""
