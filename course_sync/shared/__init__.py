"""
Shared utilities.

- geo: distance, elevation accumulation, bounding box
- errors: error taxonomy
- constants: activity types and course contract constants
- security: URL validation
"""
