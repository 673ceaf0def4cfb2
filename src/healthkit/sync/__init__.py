"""HealthKit → backend sync for HeartSense.

Modules:
    daily   — Once-per-day bulk sync and symptom-time vitals lookup
    dedup   — Deterministic row keys so repeated syncs upsert
    tracker — Runs the daily sync on start and on foreground resume
"""
