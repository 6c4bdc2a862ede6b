# limsrag/retrieval/corpus.py

"""
LIMS Knowledge Base
===================

Read-only store of short text records available for retrieval.
Loaded once at startup, never mutated at query time.

File: limsrag/retrieval/corpus.py
"""

import os
import json
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union

logger = logging.getLogger('LimsRAGRetrieval')


@dataclass(frozen=True)
class Record:
    """A single knowledge base entry"""
    id: str
    text: str


class CorpusLoadError(ValueError):
    """Corpus file is missing or malformed"""
    pass


# Built-in knowledge base (SOPs, manuals, results, workflows)
DEFAULT_RECORDS: List[Tuple[str, str]] = [
    (
        "sop_ph_meter_calibration_001",
        "SOP-001: pH Meter Calibration. Ensure instrument is clean. Use buffer solutions "
        "pH 4.0, 7.0, 10.0. Calibrate daily or before use. Record readings in logbook."
    ),
    (
        "troubleshooting_hplc_low_signal",
        "HPLC Troubleshooting: Low signal can be caused by a dirty detector, clogged column, "
        "or improperly prepared mobile phase. Check lamp intensity and detector settings first. "
        "Flush column with appropriate solvent."
    ),
    (
        "sample_prep_dna_extraction_002",
        "SOP-002: DNA Extraction from Blood. Centrifuge sample to separate plasma. "
        "Lyse cells with buffer AL. Incubate at 56°C. Use spin column for purification."
    ),
    (
        "instrument_manual_spectrophotometer_agilent",
        "Agilent UV-Vis Spectrophotometer manual. Wavelength range: 190-1100 nm. "
        "Ensure cuvette path length is 1 cm. Clean optics regularly. Power cycle if no response."
    ),
    (
        "lab_safety_guidelines_chemical_spills",
        "Lab Safety: For chemical spills, immediately contain the spill. Use appropriate PPE "
        "(gloves, goggles). Absorb with spill kit materials. Dispose according to SDS. "
        "Inform supervisor."
    ),
    (
        "sample_results_batch_20250610_ph",
        "Batch ID 20250610: Sample A1 (pH 7.1), Sample A2 (pH 7.0), Sample B1 (pH 6.9). "
        "All within acceptable range. Calibrated pH meter prior to analysis."
    ),
    (
        "lqts_workflow_sample_reception",
        "LIMS workflow for sample reception: Log sample ID, date, time, source. "
        "Assign unique LIMS number. Store at specified temperature. Verify sample integrity."
    ),
]


class CorpusStore:
    """
    Immutable collection of records keyed by id.

    Iteration order is insertion order, which is also the tie-break
    order used by the ranker.
    """

    def __init__(self, records: Iterable[Union[Record, Tuple[str, str]]] = ()):
        """
        Build the store.

        Args:
            records: Record objects or (id, text) pairs

        Raises:
            ValueError: On duplicate ids, empty ids or empty text
        """
        self._records: Dict[str, Record] = {}

        for item in records:
            record = item if isinstance(item, Record) else Record(*item)

            if not isinstance(record.id, str) or not record.id:
                raise ValueError(f"Record id must be a non-empty string: {record.id!r}")
            if not isinstance(record.text, str) or not record.text.strip():
                raise ValueError(f"Record '{record.id}' has empty text")
            if record.id in self._records:
                raise ValueError(f"Duplicate record id: {record.id}")

            self._records[record.id] = record

    def get_all(self) -> Tuple[Record, ...]:
        """Return every record in insertion order"""
        return tuple(self._records.values())

    def get(self, record_id: str) -> Optional[Record]:
        return self._records.get(record_id)

    def ids(self) -> List[str]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[Record]:
        return iter(self._records.values())


def default_corpus() -> CorpusStore:
    """Corpus built from the bundled LIMS records"""
    return CorpusStore(DEFAULT_RECORDS)


def load_corpus(path: str) -> CorpusStore:
    """
    Load a corpus from a JSON file.

    Accepted shapes:
        {"record_id": "text", ...}
        [{"id": "record_id", "text": "text"}, ...]

    Args:
        path: Path to the JSON file

    Returns:
        CorpusStore with the file's records, in file order

    Raises:
        CorpusLoadError: If the file cannot be read or has the wrong shape
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            payload = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise CorpusLoadError(f"Cannot load corpus from {path}: {e}") from e

    if isinstance(payload, dict):
        pairs = list(payload.items())
    elif isinstance(payload, list):
        pairs = []
        for entry in payload:
            if not isinstance(entry, dict) or "id" not in entry or "text" not in entry:
                raise CorpusLoadError(
                    f"Corpus list entries need 'id' and 'text' keys: {entry!r}"
                )
            pairs.append((entry["id"], entry["text"]))
    else:
        raise CorpusLoadError(
            f"Corpus file must hold a JSON object or list, got {type(payload).__name__}"
        )

    try:
        store = CorpusStore(pairs)
    except ValueError as e:
        raise CorpusLoadError(f"Invalid corpus in {path}: {e}") from e

    logger.info(f"Loaded corpus from {path}: {len(store)} records")
    return store


# Singleton instance
_corpus: Optional[CorpusStore] = None


def get_corpus() -> CorpusStore:
    """
    Get the process-wide corpus.

    Uses LIMSRAG_CORPUS_PATH when set, the bundled records otherwise.
    """
    global _corpus
    if _corpus is None:
        path = os.getenv("LIMSRAG_CORPUS_PATH")
        _corpus = load_corpus(path) if path else default_corpus()
    return _corpus
