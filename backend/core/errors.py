"""
Error taxonomy for scan ingestion, staff intents, and demo playback.

  - ScanValidationError: malformed update or intent; the update is dropped
  - ConcurrencyAnomaly:  update older than the shelf's last scan (last write wins)
  - SimulationFailure:   a scripted or async simulation step raised
"""


class ShelfScanError(Exception):
    """Base class for ShelfScan domain errors."""


class ScanValidationError(ShelfScanError):
    """A scan update or staff intent failed validation."""

    def __init__(self, message: str, *, shelf_id: str | None = None, not_found: bool = False):
        super().__init__(message)
        self.shelf_id = shelf_id
        self.not_found = not_found


class ConcurrencyAnomaly(ShelfScanError):
    """Two updates for the same shelf were observed out of order."""

    def __init__(self, shelf_id: str, incoming: str, current: str):
        super().__init__(f"Update for shelf {shelf_id} at {incoming} is older than last scan {current}")
        self.shelf_id = shelf_id
        self.incoming = incoming
        self.current = current


class SimulationFailure(ShelfScanError):
    """A simulation step failed; the owning subsystem halts."""

    def __init__(self, message: str, *, step: int | None = None):
        super().__init__(message)
        self.step = step
