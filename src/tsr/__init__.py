"""
Transformer Servicing Records (TSR) Package

Data-entry core for transformer servicing: client details, per-transformer
test data and optional OLTC sub-records, collected through a three-stage
wizard and handed over as one finalized Record.

ARCHITECTURAL GUARANTEE:
------------------------
The model and the wizard contain ZERO knowledge of:
    - Storage backends
    - File formats
    - Presentation

Saving and exporting consume the finalized Record unchanged.
"""

__version__ = "0.1.0"
