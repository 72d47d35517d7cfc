"""
Observability for the deal tracker.

Structured logging only; the analytics engines are pure and emit a
single debug record per invocation.
"""
