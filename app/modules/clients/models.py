# Supabase table: clients
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:
- id: uuid (primary key)
- name: text (not null)
- email: text (nullable) - matched case-insensitively against users.email to grant client portal access
- phone: text (nullable)
- address: text (nullable)
- notes: text (nullable)
- created_by: uuid (foreign key to users.id, nullable)
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)
"""
