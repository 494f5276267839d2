"""
Services layer: case store access, query execution, LLM escalation and the
answer() entry point.
"""
