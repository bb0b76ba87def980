"""
Storage-unit (OSD) resolver.

Maps physical device paths to the storage unit that consumes them. The mapping is
read once from a base directory holding one ``<fsid>_<uuid>`` directory per unit,
each with a ``block`` symlink and a ``whoami`` file. Device-mapper targets are
unwound through ``/sys/block/<dm>/slaves`` down to their physical devices.
"""

import glob
import logging
import os
import re
import threading
from typing import Callable, Dict, List, Optional, Set

logger = logging.getLogger(__name__)

_NVME_CONTROLLER = re.compile(r'^nvme\d+$')
_NVME_NAMESPACE_SUFFIX = re.compile(r'^n\d+$')


class StorageUnitResolver:
    """
    Lazily built device -> storage unit id lookup.

    The cache is built at most once per resolver under a lock and never rebuilt;
    after that it is only read. Both the literal and the symlink-canonicalized form
    of each device path are registered.

    Args:
        base_path: Storage unit base directory. Empty disables resolution.
        sys_block_root: Location of ``/sys/block``
        dev_root: Location of ``/dev``
        sys_class_nvme_root: Location of ``/sys/class/nvme``
        mapper_lookup: Callable returning the ``dm-N`` node name for a
            ``/dev/mapper`` path, or None
    """

    def __init__(self, base_path: str, sys_block_root: str = "/sys/block", dev_root: str = "/dev",
                 sys_class_nvme_root: str = "/sys/class/nvme",
                 mapper_lookup: Optional[Callable[[str], Optional[str]]] = None):
        self.base_path = base_path or ""
        self.sys_block_root = sys_block_root
        self.dev_root = dev_root
        self.sys_class_nvme_root = sys_class_nvme_root
        self.mapper_lookup = mapper_lookup or self._find_mapper_node
        self._cache: Optional[Dict[str, str]] = None
        self._lock = threading.Lock()

    def resolve(self, device: str) -> str:
        """
        Return the storage unit id for a device path, or "" when none applies.

        NVMe controller paths (``/dev/nvme0``) are expanded to their namespaces.
        A missing base directory or an unmapped device is not an error.
        """
        if not self.base_path:
            return ""

        cache = self._get_cache()
        for candidate in self._candidates(device):
            canonical = _canonical(candidate)
            unit_id = cache.get(canonical)
            if unit_id is None and canonical != candidate:
                unit_id = cache.get(candidate)
            if unit_id is not None:
                logger.debug(f"Found storage unit {unit_id} for {device} via {candidate}")
                return unit_id

        logger.debug(f"No storage unit found for {device}")
        return ""

    @property
    def mappings(self) -> Dict[str, str]:
        """Snapshot of the device -> unit id cache (built on first access)."""
        return dict(self._get_cache())

    def _get_cache(self) -> Dict[str, str]:
        if self._cache is not None:
            return self._cache
        with self._lock:
            if self._cache is None:
                self._cache = self._build_cache()
        return self._cache

    def _build_cache(self) -> Dict[str, str]:
        cache: Dict[str, str] = {}
        if not os.path.isdir(self.base_path):
            logger.debug(f"Storage unit base path {self.base_path} does not exist, skipping mapping")
            return cache

        logger.info(f"Initializing storage unit mapping cache from {self.base_path}")
        unit_dirs = sorted(glob.glob(os.path.join(self.base_path, "*_*")))
        if not unit_dirs:
            logger.debug(f"No storage unit directories found under {self.base_path}")

        mapping_count = 0
        for unit_dir in unit_dirs:
            if not os.path.isdir(unit_dir):
                continue
            block_path = os.path.join(unit_dir, "block")
            whoami_path = os.path.join(unit_dir, "whoami")
            if not os.path.lexists(block_path) or not os.path.isfile(whoami_path):
                continue

            try:
                with open(whoami_path, 'r') as f:
                    unit_id = f.read().strip()
            except OSError as e:
                logger.warning(f"Cannot read {whoami_path}: {e}")
                continue
            if not unit_id:
                continue

            target = _link_target(block_path)
            canonical = os.path.realpath(block_path)
            dm_node = self._dm_node_for(canonical)

            if dm_node:
                physical = self.resolve_dm_slaves(dm_node)
                if not physical:
                    logger.warning(f"Device mapper chain for {canonical} has no physical devices")
                for device in physical:
                    mapping_count += _register(cache, device, unit_id)
            else:
                mapping_count += _register(cache, target, unit_id)
                if canonical != target:
                    mapping_count += _register(cache, canonical, unit_id)

        logger.info(f"Storage unit mapping cache initialized with {mapping_count} mappings")
        return cache

    def _dm_node_for(self, path: str) -> Optional[str]:
        name = os.path.basename(path)
        if name.startswith("dm-"):
            return name
        if os.sep + "mapper" + os.sep in path:
            node = self.mapper_lookup(path)
            if node is None:
                logger.warning(f"Failed to find device mapper node for {path}")
            return node
        return None

    def resolve_dm_slaves(self, dm_node: str, seen: Optional[Set[str]] = None) -> List[str]:
        """
        Unwind a device mapper node to the physical devices below it.

        Nested dm-* slaves are resolved recursively. A node reached twice on the
        same chain is skipped with a warning. Only non dm-* leaves are returned.
        """
        seen = set(seen or ())
        if dm_node in seen:
            logger.warning(f"Device mapper cycle detected at {dm_node}, skipping")
            return []
        seen.add(dm_node)

        slaves_dir = os.path.join(self.sys_block_root, dm_node, "slaves")
        if not os.path.isdir(slaves_dir):
            if dm_node.startswith("dm-"):
                logger.warning(f"Device mapper node {dm_node} has no slaves directory")
                return []
            return [os.path.join(self.dev_root, dm_node)]

        devices = []
        for slave in sorted(os.listdir(slaves_dir)):
            if slave.startswith("dm-"):
                devices.extend(self.resolve_dm_slaves(slave, seen))
            else:
                devices.append(os.path.join(self.dev_root, slave))
        return devices

    def _find_mapper_node(self, mapper_path: str) -> Optional[str]:
        """Find the dm-N node for a /dev/mapper entry by name, then by device number."""
        mapper_name = os.path.basename(mapper_path)
        dm_dirs = sorted(glob.glob(os.path.join(self.sys_block_root, "dm-*")))
        for dm_dir in dm_dirs:
            name = _read_text(os.path.join(dm_dir, "dm", "name"))
            if name == mapper_name:
                return os.path.basename(dm_dir)

        try:
            rdev = os.stat(mapper_path).st_rdev
        except OSError as e:
            logger.debug(f"Cannot stat {mapper_path}: {e}")
            return None
        wanted = f"{os.major(rdev)}:{os.minor(rdev)}"
        for dm_dir in dm_dirs:
            if _read_text(os.path.join(dm_dir, "dev")) == wanted:
                return os.path.basename(dm_dir)
        return None

    def _candidates(self, device: str) -> List[str]:
        """The device itself plus, for NVMe controllers, each namespace path."""
        candidates = [device]
        name = os.path.basename(device)
        if not _NVME_CONTROLLER.match(name):
            return candidates

        namespaces = []
        class_dir = os.path.join(self.sys_class_nvme_root, name)
        if os.path.isdir(class_dir):
            pattern = re.compile(rf'^{re.escape(name)}n\d+$')
            namespaces = [os.path.join(os.path.dirname(device), entry)
                          for entry in sorted(os.listdir(class_dir)) if pattern.match(entry)]
        if not namespaces:
            namespaces = [path for path in sorted(glob.glob(device + "n*"))
                          if _NVME_NAMESPACE_SUFFIX.match(path[len(device):])]

        for namespace in namespaces:
            logger.debug(f"Found namespace device {namespace} for {device}")
        return candidates + namespaces


def _register(cache: Dict[str, str], device: str, unit_id: str) -> int:
    cache[device] = unit_id
    canonical = _canonical(device)
    if canonical != device:
        cache[canonical] = unit_id
    logger.debug(f"Mapped {device} to storage unit {unit_id}")
    return 1


def _canonical(path: str) -> str:
    """Symlink resolved path, or the path itself when it does not exist."""
    if os.path.exists(path):
        return os.path.realpath(path)
    return path


def _link_target(path: str) -> str:
    """First hop of a symlink as an absolute path."""
    if not os.path.islink(path):
        return path
    target = os.readlink(path)
    if not os.path.isabs(target):
        target = os.path.normpath(os.path.join(os.path.dirname(path), target))
    return target


def _read_text(path: str) -> str:
    try:
        with open(path, 'r') as f:
            return f.read().strip()
    except OSError:
        return ""
