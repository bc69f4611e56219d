"""
Task pipeline services: orchestrator, provider client, normalizers and stores.
"""
