"""Data access: the external row store (Postgres) and the spreadsheet fallback.

Both sources produce the same `TableResult` shape and never raise for configuration or query
failures; the failure is carried in the result so the UI can tell "not configured" from
"no matching rows".
"""
