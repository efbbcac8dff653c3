"""Care alerts package initializer.

Ensures the local ``care_alerts`` package is resolved as a regular package
rather than through namespace package resolution.
"""
