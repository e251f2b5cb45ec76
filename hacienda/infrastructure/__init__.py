"""Local persistence used by the submission core.

- **sequence_store**: cross-process sequence counters in ``sequences.json``
"""

from hacienda.infrastructure.sequence_store import SequenceStore, build_sequence_key

__all__ = ["SequenceStore", "build_sequence_key"]
