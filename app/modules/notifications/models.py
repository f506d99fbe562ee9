# Supabase table: notifications
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:
- id: uuid (primary key)
- user_id: uuid (foreign key to users.id, not null) - recipient
- title: text (not null)
- message: text (not null)
- related_job_id: uuid (foreign key to jobs.id, nullable)
- type: text (default: 'info') - values: info, success, warning, error
- is_read: boolean (default: false)
- created_at: timestamp (default: now())

Rows are inserted only through NotificationService.dispatch, which receives
NotificationIntent values produced by the job workflow engine.
"""
