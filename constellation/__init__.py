"""
Skill Constellation Engine
Prerequisite graph, progression tracking, and deterministic star-map layout
for a 66-module learning constellation.
"""

__version__ = "0.1.0"
