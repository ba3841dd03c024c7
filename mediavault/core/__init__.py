"""
Core Infrastructure for MediaVault.

Foundational services the media, API and CLI layers depend on.

Architecture Position
---------------------
    CLI / API (outermost)
      └── Media (library, imaging, analysis, handlers)
            └── **Core** (innermost - you are here)

Components
----------
**Configuration (config/, config_loaders.py)**
    Nested dataclasses loaded from YAML with environment overrides.

**Logging (logging.py)**
    Structured logging with key=value fields and a per-job JobLogger.

**Exceptions (exceptions.py)**
    MediaVaultError hierarchy with error codes and fix suggestions.

**Jobs (jobs/)**
    In-memory job store and the bounded-concurrency JobScheduler.
"""
