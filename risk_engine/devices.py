"""Device Trust Registry.

Tracks per-device fingerprint state and a suspicion score in [0, 1]:
- Unknown (not enrolled) device
- Unrecognized browser or operating system
- Low-end hardware profile
- Unresolved network type
- Low-variance interaction timing suggesting automation

Each signal contributes a fixed increment; the score is their clamped sum and
is recomputed from the current fingerprint on every sighting. A device that
returns after a long idle period carries an extra dormancy increment for that
sighting.
"""

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

import numpy as np

from .exceptions import NotFoundError
from .models import DeviceFingerprint

logger = logging.getLogger(__name__)

UNRESOLVED_VALUES = {"", "unknown", "unresolved", "none", "null"}

DeviceScorer = Callable[[DeviceFingerprint, bool], float]


def _is_unresolved(value: Optional[str]) -> bool:
    return value is None or value.strip().lower() in UNRESOLVED_VALUES


class DeviceRiskScorer:
    """Deterministic device suspicion scoring from fingerprint signals."""

    UNKNOWN_DEVICE = 0.1
    UNRECOGNIZED_SOFTWARE = 0.3
    LOW_END_HARDWARE = 0.2
    UNRESOLVED_NETWORK = 0.2
    AUTOMATION = 0.3

    def __init__(self,
                 min_cores: int = 2,
                 min_memory_gb: float = 4.0,
                 min_mouse_movement: float = 10.0,
                 min_timing_variation: float = 0.05,
                 min_timing_samples: int = 5):
        """Initialize device risk scorer.

        Args:
            min_cores: Fewer CPU cores than this counts as low-end hardware
            min_memory_gb: Less memory than this counts as low-end hardware
            min_mouse_movement: Mean mouse movement below this suggests automation
            min_timing_variation: Coefficient of variation of keystroke or click
                intervals below this suggests scripted input
            min_timing_samples: Minimum samples before timing variation is judged
        """
        self.min_cores = min_cores
        self.min_memory_gb = min_memory_gb
        self.min_mouse_movement = min_mouse_movement
        self.min_timing_variation = min_timing_variation
        self.min_timing_samples = min_timing_samples

    def signals(self, fingerprint: DeviceFingerprint, is_trusted: bool) -> Dict[str, float]:
        """Return the increments of every signal that fired.

        Args:
            fingerprint: Fingerprint reported with the transaction
            is_trusted: Current enrollment state of the device

        Returns:
            Mapping of signal name to its increment
        """
        fired: Dict[str, float] = {}

        if not is_trusted:
            fired["unknown_device"] = self.UNKNOWN_DEVICE

        if _is_unresolved(fingerprint.browser) or _is_unresolved(fingerprint.os):
            fired["unrecognized_software"] = self.UNRECOGNIZED_SOFTWARE

        hardware = fingerprint.hardware
        if hardware is not None and (hardware.cores < self.min_cores or hardware.memory < self.min_memory_gb):
            fired["low_end_hardware"] = self.LOW_END_HARDWARE

        network = fingerprint.network
        if network is None or _is_unresolved(network.connection_type):
            fired["unresolved_network"] = self.UNRESOLVED_NETWORK

        if self._looks_automated(fingerprint):
            fired["automation"] = self.AUTOMATION

        return fired

    def _looks_automated(self, fingerprint: DeviceFingerprint) -> bool:
        behavior = fingerprint.behavior

        if behavior.mouse_movement:
            if float(np.mean(behavior.mouse_movement)) < self.min_mouse_movement:
                return True

        for samples in (behavior.keystroke_timing, behavior.click_pattern):
            if len(samples) < self.min_timing_samples:
                continue
            values = np.asarray(samples, dtype=float)
            mean = values.mean()
            if mean <= 0:
                continue
            if values.std() / mean < self.min_timing_variation:
                return True

        return False

    def __call__(self, fingerprint: DeviceFingerprint, is_trusted: bool) -> float:
        total = sum(self.signals(fingerprint, is_trusted).values())
        return round(min(1.0, max(0.0, total)), 4)


class DeviceTrustRegistry:
    """Thread-safe store of device fingerprints keyed by device id.

    Mutations take a per-device lock; unrelated devices never contend.
    ``is_trusted`` changes only through :meth:`enroll` and :meth:`revoke`.
    """

    DORMANT_DEVICE = 0.15

    def __init__(self,
                 scorer: Optional[DeviceScorer] = None,
                 clock: Optional[Callable[[], datetime]] = None,
                 dormant_after: timedelta = timedelta(days=30)):
        """Initialize the registry.

        Args:
            scorer: Fingerprint scorer
            clock: Source of sighting timestamps
            dormant_after: Idle time after which a returning device counts as dormant
        """
        self._scorer = scorer or DeviceRiskScorer()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.dormant_after = dormant_after
        self._devices: Dict[str, DeviceFingerprint] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, device_id: str) -> threading.Lock:
        lock = self._locks.get(device_id)
        if lock is None:
            with self._locks_guard:
                lock = self._locks.setdefault(device_id, threading.Lock())
        return lock

    def upsert(self, fingerprint: DeviceFingerprint) -> float:
        """Record a sighting of a device and return its current risk score.

        Args:
            fingerprint: Fingerprint reported with the transaction

        Returns:
            Risk score in [0, 1]
        """
        device_id = fingerprint.device_id
        with self._lock_for(device_id):
            existing = self._devices.get(device_id)
            is_trusted = existing.is_trusted if existing is not None else False
            score = self._scorer(fingerprint, is_trusted)
            now = self._clock()
            if self._is_dormant(existing, now):
                score = round(min(1.0, score + self.DORMANT_DEVICE), 4)
                logger.info(f"Device {device_id} returned after {now - existing.last_seen} idle")

            self._devices[device_id] = fingerprint.model_copy(update={
                "risk_score": score,
                "is_trusted": is_trusted,
                "first_seen": existing.first_seen if existing is not None else now,
                "last_seen": now,
                "sighting_count": (existing.sighting_count if existing is not None else 0) + 1,
            })

        if existing is None:
            logger.debug(f"First sighting of device {device_id}, score {score:.2f}")
        return score

    def _is_dormant(self, existing: Optional[DeviceFingerprint], now: datetime) -> bool:
        if existing is None or existing.last_seen is None:
            return False
        return now - existing.last_seen > self.dormant_after

    def lookup(self, device_id: str) -> Optional[DeviceFingerprint]:
        """Get the stored fingerprint for a device, or None if never seen."""
        return self._devices.get(device_id)

    def enroll(self, device_id: str) -> DeviceFingerprint:
        """Mark a known device as trusted.

        Raises:
            NotFoundError: If the device has never been seen
        """
        return self._set_trust(device_id, True)

    def revoke(self, device_id: str) -> DeviceFingerprint:
        """Withdraw trust from a known device.

        Raises:
            NotFoundError: If the device has never been seen
        """
        return self._set_trust(device_id, False)

    def _set_trust(self, device_id: str, trusted: bool) -> DeviceFingerprint:
        with self._lock_for(device_id):
            existing = self._devices.get(device_id)
            if existing is None:
                raise NotFoundError("Device", device_id)

            updated = existing.model_copy(update={
                "is_trusted": trusted,
                "risk_score": self._scorer(existing, trusted),
            })
            self._devices[device_id] = updated

        logger.info(f"Device {device_id} {'enrolled' if trusted else 'revoked'}")
        return updated

    def __len__(self) -> int:
        return len(self._devices)
