"""
Sync subsystem.

Components:
- models.py: data structures (TaskRecord, TaskListMeta, Snapshot, RolloverEvent)
- reconcile.py: merges the stored snapshot with a fresh remote one, detects rollovers
- dedupe.py: decides whether a rollover already has an archive copy remotely
- archive.py: writes archive copies to the remote service
- engine.py: one sync run end to end (load -> fetch -> reconcile -> archive -> save)
- stats.py: summary counters for display
"""
