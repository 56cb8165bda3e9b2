"""Visitor entrance registration for a residential building front desk.

The entrance workflow resolves a visitor by national ID (CPF), enforces the
banned-visitor list, stores the visitor photo, and appends an access log entry.
Storage backends are injected; see portaria.backends.
"""
