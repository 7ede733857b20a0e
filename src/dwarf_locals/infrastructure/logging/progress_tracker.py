#!/usr/bin/env python3

"""Progress tracking for DWARF decoding and extraction."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from time import time


class ProgressTracker:
    """
    Track and report decoding progress with per-unit statistics.

    Unit statistics are recorded from the coordinating thread once a unit is
    finished, so workers never touch the counters.
    """

    def __init__(self, logger: logging.Logger):
        """
        Initialize progress tracker.

        Args:
            logger: Logger instance for progress reporting
        """
        self.logger = logger
        self.start_time = time()
        self.unit_count = 0
        self.failed_units = 0
        self.die_count = 0
        self.variable_count = 0
        self.operation_stack: list[tuple[str, float]] = []

    @contextmanager
    def track_operation(self, operation_name: str) -> Iterator[None]:
        """
        Track a high-level operation with timing.

        Args:
            operation_name: Name of the operation being tracked
        """
        start_time = time()
        self.operation_stack.append((operation_name, start_time))

        self.logger.debug(f"Starting operation: {operation_name}")

        try:
            yield
            elapsed = time() - start_time
            self.logger.debug(f"Completed operation: {operation_name} in {elapsed:.3f}s")
        except Exception as e:
            elapsed = time() - start_time
            self.logger.error(f"Failed operation: {operation_name} after {elapsed:.3f}s: {e}")
            raise
        finally:
            self.operation_stack.pop()

    def record_unit(
        self, offset: int, die_count: int, elapsed: float, error: Exception | None = None
    ) -> None:
        """Record the outcome of decoding one unit."""
        self.unit_count += 1
        self.die_count += die_count
        if error is not None:
            self.failed_units += 1
            self.logger.debug(f"Unit #{self.unit_count} at 0x{offset:x} failed: {error}")
            return
        self.logger.debug(
            f"Unit #{self.unit_count} at 0x{offset:x} decoded in {elapsed:.3f}s "
            f"({die_count} DIEs)"
        )

    def count_variables(self, count: int) -> None:
        self.variable_count += count

    def report_summary(self) -> None:
        """Report final processing statistics."""
        total_time = time() - self.start_time
        avg_die_rate = self.die_count / total_time if total_time > 0 else 0

        self.logger.info(
            f"Processing complete: {self.unit_count} units ({self.failed_units} failed), "
            f"{self.die_count} DIEs, {self.variable_count} variables "
            f"in {total_time:.2f}s ({avg_die_rate:.1f} DIEs/s)"
        )

    def get_current_context(self) -> str:
        """
        Get current operation context for logging.

        Returns:
            String describing current operation stack
        """
        if not self.operation_stack:
            return "idle"

        operations = [op[0] for op in self.operation_stack]
        return " > ".join(operations)

    def reset(self) -> None:
        """Reset all counters and timers."""
        self.start_time = time()
        self.unit_count = 0
        self.failed_units = 0
        self.die_count = 0
        self.variable_count = 0
        self.operation_stack.clear()
