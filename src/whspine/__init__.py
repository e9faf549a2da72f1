"""
warehouse-spine - time-partitioned, multi-tenant warehouse maintenance.

- whspine.core: Storage, dialects, errors, results, logging, settings
- whspine.registry: Templates, tenant connections, partition catalog
- whspine.partitions: Day partition lifecycle, windows, year promotion
- whspine.views: Tenant and public aggregate views
- whspine.warehouse: Wiring of all of the above from settings
"""

__version__ = "0.1.0"
