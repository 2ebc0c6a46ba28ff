"""confstore: named configuration objects persisted as XML files.

Configuration types are dataclasses registered with
``confstore.registry.configtype``; ``confstore.store`` loads and saves them,
``confstore.management`` exposes them as manageable beans.
"""

__version__ = "0.1.0"
