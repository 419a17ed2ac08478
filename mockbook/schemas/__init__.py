"""
Pydantic schema package.

Domain-specific schema modules live here, e.g.:
- common.py (enums, auth context)
- slots.py
- payments.py
- interviews.py (interviews, feedback, ratings, prices)
"""
