"""Backend adapters, resilience primitives and the fallback orchestrator"""
