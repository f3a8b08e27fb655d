"""
hdlgraph: Symbol search and module hierarchy analysis for Verilog codebases.

hdlgraph extracts symbols from hardware source to build an index, enabling you to:
- Find modules, ports, signals and instances by name, with fuzzy ranking
- Fall back to full-text search when no symbol matches
- Walk the module instantiation hierarchy and trace signals across it

Usage:
    from hdlgraph.core.workspace import HdlIndex

    index = HdlIndex.for_directory(Path("."))
    index.build_index()
    index.get_top_level_modules()
    index.save()
"""

__version__ = "0.1.0"
