"""
Enrichment of normalized records.

- storage_unit_resolver.py: physical device -> storage unit (OSD) id
- alert_classifier.py: threshold checks, severity and alert message
"""
