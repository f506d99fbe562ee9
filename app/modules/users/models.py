# Supabase tables: users, auth.users
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py
# Authentication is handled by Supabase Auth (auth.users table)

"""
Expected Supabase table structure:

users:
- id: uuid (primary key, references auth.users.id)
- email: text (unique, not null) - synced from auth.users
- name: text (nullable)
- role: text (not null, default: 'client') - values: admin, receptionist, manager,
  photographer, designer, editor, ads_manager, client
- is_active: boolean (default: true) - inactive users cannot authenticate and get no notifications
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)

Note: the role is changed only by an admin (PUT /users/{id}/role). Client users
are linked to client records by email, not by a foreign key.
"""
