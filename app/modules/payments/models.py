# Supabase table: payments
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:
- id: uuid (primary key)
- client_id: uuid (foreign key to clients.id, not null)
- job_id: uuid (foreign key to jobs.id, nullable) - must belong to the same client
- amount: numeric (not null, > 0)
- description: text (nullable)
- payment_method: text (default: 'cash') - values: cash, card, bank_transfer, other
- recorded_by: uuid (foreign key to users.id)
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)

A client's total paid is summed from this table on read; clients carry no running total.
"""
