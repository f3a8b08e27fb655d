"""
Extractors: turn hardware-description source into symbols.

The core consumes extractor output and never parses source itself.

Components:
    - Extractor: Protocol defining the extractor interface
    - VerilogExtractor: Comment-aware scanner for Verilog/SystemVerilog
    - ExtractionResult: Container for symbols, module definitions and instances

The extractor reports:
    - Symbols: modules, functions, tasks, ports, signals, instances, constants
    - Module definitions: line range and ordered port list
    - Instances: module type, connections and parameter overrides

Adding a new extractor:
    1. Create a class implementing the Extractor protocol
    2. Implement extract() to return ExtractionResult
    3. Implement supports() to check file extensions
"""

from hdlgraph.languages.base import Extractor
from hdlgraph.languages.models import ExtractedSymbol, ExtractionResult
from hdlgraph.languages.verilog import VerilogExtractor

__all__ = [
    "Extractor",
    "ExtractedSymbol",
    "ExtractionResult",
    "VerilogExtractor",
]
