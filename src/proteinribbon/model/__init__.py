"""
The MODEL layer contains pure data structures and parsing logic.
It has NO knowledge of curve fitting or mesh extrusion.
It deals with Structures, Secondary Structure, Mesh buffers and I/O.
"""
