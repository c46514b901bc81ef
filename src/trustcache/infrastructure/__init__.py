"""
Infrastructure Layer

Backend adapters (memory, Redis, SQL) and the orchestrator that composes them.
"""
