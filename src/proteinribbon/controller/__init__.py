"""
Geometry Engine
===============
Curve fitting, frame propagation, extrusion and mesh assembly.

Note: File parsing and persistence live in the model layer.
"""
