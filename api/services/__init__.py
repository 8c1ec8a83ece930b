"""
API Services Layer.

Draft editing, persistence orchestration and editing sessions for the
question-set endpoints. Import from the submodules directly.
"""
