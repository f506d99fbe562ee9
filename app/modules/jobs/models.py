# Supabase table: jobs
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:
- id: uuid (primary key)
- title: text (not null)
- type: text (not null) - values: photo_session, video_editing, design
- status: text (not null, default: 'pending') - values: pending, in_progress, review, completed, delivered
- client_id: uuid (foreign key to clients.id, nullable)
- assigned_to: uuid (foreign key to users.id, nullable)
- created_by: uuid (foreign key to users.id, nullable)
- description: text (nullable)
- due_date: date (nullable)
- session_date: timestamp (nullable)
- price: numeric (nullable)
- depends_on_job_id: uuid (foreign key to jobs.id, nullable) - prerequisite job in a pipeline
- workflow_stage: text (nullable) - stage name inside a pipeline (same values as type)
- workflow_order: integer (nullable) - 1-based position inside a pipeline
- workflow_history: jsonb (nullable) - list of {previous_stage, new_stage, transitioned_at, transitioned_by}
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable) - also used as the compare-and-swap token for status transitions

Delivered jobs are archived: they stay in the table and cannot be deleted.
"""
