"""
Office Assignment & Conflict Resolution Engine.

Submodules are imported directly (e.g. ``office_scheduler.engine``) so that
``office_models`` can use the normalizer without import cycles.
"""
