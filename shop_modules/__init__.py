"""
Shop modules -- orchestration services over the kernel and engines.

Each module service owns its transaction boundary: it commits on success
and rolls back (then re-raises) on failure.  Modules import from
``shop_engines``, ``shop_kernel`` and ``shop_config``; never the reverse.
"""
