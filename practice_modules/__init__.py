"""
Practice Modules.

Feature modules built on the practice kernel.  Each module contains its
domain models, workflows, configuration schema, persistence models and
services.

Modules:
- accounts_production: statutory accounts sets (company and sole-trader
  financial statements), their validation, calculations and outputs.
"""
