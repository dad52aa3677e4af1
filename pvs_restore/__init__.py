"""PowerVS Restore - provision a secondary instance from a fresh snapshot.

Creates an empty secondary instance, snapshots the primary instance,
clones the snapshot's volumes, attaches the clones to the secondary and
boots it. A failed run is rolled back; snapshots are always kept.

Example usage:
    >>> from pvs_restore.core.config import load_config
    >>> from pvs_restore.main import run_restore_job
    >>> outcome = run_restore_job(load_config())
    >>> outcome.success
    True
"""

from pvs_restore.core.config import VERSION

__version__ = VERSION
