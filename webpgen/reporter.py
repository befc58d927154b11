"""
Reporter - Human-readable batch status and gap reports.
"""

import logging
import sys
from datetime import datetime
from typing import Optional, TextIO

from .gap_report import GapReport


class Reporter:
    """
    Prints status payloads (see BatchEngine.status) and gap reports.
    """

    def __init__(
        self,
        output: Optional[TextIO] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize reporter.

        Args:
            output: Output stream (default: stdout)
            logger: Optional logger instance
        """
        self.output = output or sys.stdout
        self.logger = logger or logging.getLogger(__name__)

    def _print(self, text: str = "") -> None:
        """Print to output stream."""
        print(text, file=self.output)

    @staticmethod
    def _format_timestamp(timestamp: int) -> str:
        if not timestamp:
            return "never"
        return datetime.fromtimestamp(timestamp).strftime('%Y-%m-%d %H:%M:%S')

    def report_status(self, status: dict) -> None:
        """Print the batch state, work remaining and cumulative savings."""
        state = status['state']
        stats = status['stats']
        total_assets = status['total_assets']
        needing = status['needing_work']
        coverage = (status['fully_optimized'] / total_assets * 100) if total_assets else 100.0

        self._print("=" * 60)
        self._print("BATCH STATUS")
        self._print("=" * 60)
        self._print()
        self._print(f"  Status:            {state['status']}")
        if state['total']:
            pct = min(100.0, state['processed'] / state['total'] * 100)
            self._print(f"  Progress:          {state['processed']:,} / {state['total']:,}  ({pct:.1f}%)")
        else:
            self._print(f"  Progress:          {state['processed']:,} / {state['total']:,}")
        self._print(f"  Cursor:            {state['cursor']:,}")
        self._print(f"  Last run:          {self._format_timestamp(state['last_run'])}")
        self._print()
        self._print(f"  Assets:            {total_assets:>10,}")
        self._print(f"  Needing work:      {needing:>10,}")
        self._print(f"  Fully optimized:   {status['fully_optimized']:>10,}  ({coverage:.1f}%)")
        self._print()
        self._print(f"  MB saved:          {stats['mb_saved']:>10.2f}")
        self._print(f"  Images optimized:  {stats['images_optimized']:>10,}")

        gate = status.get('gate')
        if gate and not (gate['ready'] and gate['processing_enabled']):
            self._print()
            if not gate['ready']:
                self._print("  ! Not ready: no WebP encoder available or library not writable")
            if not gate['processing_enabled']:
                self._print("  ! Processing is disabled")
        self._print()

    def report_chunk(self, chunk: dict) -> None:
        """Print one chunk result."""
        state = "done" if chunk['done'] else "more to do"
        self._print(
            f"Chunk: {chunk['assets_visited']} assets, {chunk['processed']} files generated, "
            f"{chunk['bytes_saved']:,} bytes saved ({state})"
        )
        for error in chunk['errors']:
            self._print(f"  [ERROR] {error}")

    def report_gaps(self, asset_id: int, gaps: GapReport) -> None:
        """Print the gaps of one asset."""
        if gaps.is_empty:
            self._print(f"Asset {asset_id}: nothing to do")
            return
        self._print(f"Asset {asset_id}:")
        if gaps.missing_resolutions:
            self._print(f"  Missing sizes: {', '.join(gaps.missing_resolutions)}")
        for name, path in gaps.missing_derived.items():
            self._print(f"  Missing WebP [{name}]: {path}")
