"""
Agents package for AI-backed question authoring.

Generation helpers live in ``agents.generation``; they reach the AI
backend over websockets and write into question-set drafts.
"""
